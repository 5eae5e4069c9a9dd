from rest_framework.permissions import BasePermission

from .models import UserRole


class IsStaffRole(BasePermission):
    """Allow only staff role or superuser."""

    message = "Staff access required"

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and (user.is_superuser or getattr(user, "role", None) == UserRole.STAFF)
        )


class IsMemberRole(BasePermission):
    """Allow only members."""

    message = "Member access required"

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and getattr(user, "role", None) == UserRole.MEMBER
        )
