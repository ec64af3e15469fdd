from rest_framework.permissions import BasePermission


class HasRole(BasePermission):
    """Allows access only to authenticated users with role == ``role``."""
    role = None

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) == self.role


class IsDriver(HasRole):
    role = "driver"


class IsCustomer(HasRole):
    role = "customer"


class IsOperator(BasePermission):
    """Operators and staff."""

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return bool(getattr(user, "is_operator", False))
