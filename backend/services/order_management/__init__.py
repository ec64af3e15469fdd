"""
Order management service - driver and customer actions on orders.

This module handles:
    - Accepting offered or assigned orders
    - Declining orders (recording rejections)
    - Pickup / transit / delivery progression
    - Cancelling and reopening orders
"""

from .order_lifecycle import (
    OrderResult,
    accept_order,
    reject_order,
    advance_order,
    cancel_order,
    reopen_order,
    record_rejection,
    get_current_driver_order,
)

from .exceptions import (
    OrderNotFoundError,
    OrderNotAvailableError,
    InvalidTransitionError,
    DriverNotEligibleError,
)

__all__ = [
    # Lifecycle operations
    "OrderResult",
    "accept_order",
    "reject_order",
    "advance_order",
    "cancel_order",
    "reopen_order",
    "record_rejection",
    "get_current_driver_order",
    # Exceptions
    "OrderNotFoundError",
    "OrderNotAvailableError",
    "InvalidTransitionError",
    "DriverNotEligibleError",
]
