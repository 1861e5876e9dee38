from rest_framework.permissions import BasePermission, SAFE_METHODS

from networking.models import Block, Follow


def can_view_owner_content(profile, owner) -> bool:
    """Own, public or followed, and no block in either direction."""
    if owner.pk == profile.pk:
        return True
    if owner.is_deleted or Block.exists_between(profile.pk, owner.pk):
        return False
    if owner.is_public:
        return True
    return Follow.objects.filter(follower=profile, following=owner).exists()


class CanViewVideo(BasePermission):
    """Read and engage with videos you can see; only the owner may delete."""

    def has_object_permission(self, request, view, obj):
        if not request.user.is_authenticated:
            return False

        me = request.user.profile
        if request.method == "DELETE" and view.action == "destroy":
            return obj.owner_id == me.pk

        return can_view_owner_content(me, obj.owner)


class CanAccessComment(BasePermission):
    """Reading follows the video's visibility; deletion is decided by the service."""

    def has_object_permission(self, request, view, obj):
        if not request.user.is_authenticated:
            return False

        if request.method in SAFE_METHODS or request.method == "POST":
            return can_view_owner_content(request.user.profile, obj.video.owner)

        return True
