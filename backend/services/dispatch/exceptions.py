"""Custom exceptions for the dispatch engine."""


class DispatchError(Exception):
    """Base class for dispatch engine errors."""
    pass


class InvalidChangeEvent(DispatchError):
    """Raised when a change-feed payload cannot be decoded."""
    pass
