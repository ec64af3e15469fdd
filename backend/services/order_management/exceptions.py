"""Custom exceptions for order management."""


class OrderNotFoundError(Exception):
    """Raised when an order cannot be found."""
    pass


class OrderNotAvailableError(Exception):
    """Raised when an order is no longer in a state the driver can act on."""
    pass


class InvalidTransitionError(Exception):
    """Raised when a requested status change is not allowed."""
    pass


class DriverNotEligibleError(Exception):
    """Raised when a driver is not approved to take orders."""
    pass
