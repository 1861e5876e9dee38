from rest_framework.permissions import BasePermission


class CanViewProfileDetail(BasePermission):
    """Full profile is visible when public, own, or followed by the viewer"""

    def has_object_permission(self, request, view, obj):

        return obj.can_view_details(request.user)
