from rest_framework.permissions import BasePermission


class HasActiveProfile(BasePermission):
    """Caller is authenticated and owns a profile that is not soft-deleted."""

    message = "An active profile is required."

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        profile = getattr(user, "profile", None)
        return profile is not None and not profile.is_deleted
