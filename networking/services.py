"""
Write paths of the follow graph.

Every operation that touches an edge runs inside transaction.atomic(); the
counter updates in networking.signals fire on the same connection, so an
edge never commits without its counters (and vice versa).
"""

import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.db.models import Exists, F, OuterRef, Q
from rest_framework.exceptions import NotFound, PermissionDenied

from networking.models import Block, Follow, FollowRequest
from notifications import services as notifications
from notifications.models import Notification
from reels_api.exceptions import AlreadyFollowing, SelfFollow
from user.models import Profile

logger = logging.getLogger(__name__)

FOLLOWING = "following"
REQUESTED = "requested"
NOT_FOLLOWING = "not_following"

SUGGESTION_LIMIT = 10


@dataclass
class FollowOutcome:
    status: str
    created: bool
    follow_request: FollowRequest | None = None


def _ensure_can_interact(actor: Profile, target: Profile) -> None:
    if target.is_deleted:
        raise NotFound("User not found.")
    if Block.exists_between(actor.pk, target.pk):
        raise PermissionDenied("Action not allowed.")


def request_or_create_follow(requester: Profile, target: Profile) -> FollowOutcome:
    """
    Follow target directly, or file a pending request when target requires
    approval. Repeating a pending request returns the existing one.
    """
    if requester.pk == target.pk:
        raise SelfFollow()
    _ensure_can_interact(requester, target)

    if Follow.objects.filter(follower=requester, following=target).exists():
        raise AlreadyFollowing()

    if target.requires_follow_approval():
        return _file_follow_request(requester, target)

    try:
        with transaction.atomic():
            Follow.objects.create(follower=requester, following=target)
            notifications.notify(
                recipient=target,
                actor=requester,
                type=Notification.NotificationType.FOLLOW,
                entity_type=Notification.EntityType.USER,
                entity_id=requester.pk,
            )
    except IntegrityError:
        # concurrent follow of the same pair won the insert
        raise AlreadyFollowing()

    logger.info(f"Profile {requester.pk} now follows {target.pk}")
    return FollowOutcome(status=FOLLOWING, created=True)


def _file_follow_request(requester: Profile, target: Profile) -> FollowOutcome:
    pending = FollowRequest.objects.filter(
        requester=requester,
        recipient=target,
        status=FollowRequest.RequestStatus.PENDING,
    ).first()
    if pending is not None:
        return FollowOutcome(status=REQUESTED, created=False, follow_request=pending)

    try:
        with transaction.atomic():
            follow_request = FollowRequest.objects.create(
                requester=requester, recipient=target
            )
            notifications.notify(
                recipient=target,
                actor=requester,
                type=Notification.NotificationType.FOLLOW_REQUEST,
                entity_type=Notification.EntityType.FOLLOW_REQUEST,
                entity_id=follow_request.pk,
            )
    except IntegrityError:
        follow_request = FollowRequest.objects.get(
            requester=requester,
            recipient=target,
            status=FollowRequest.RequestStatus.PENDING,
        )
        return FollowOutcome(
            status=REQUESTED, created=False, follow_request=follow_request
        )

    logger.info(
        f"Follow request #{follow_request.pk} filed: {requester.pk} -> {target.pk}"
    )
    return FollowOutcome(status=REQUESTED, created=True, follow_request=follow_request)


def _lock_pending_request(recipient: Profile, request_id: int) -> FollowRequest:
    """Row-lock the request and check the caller is its recipient."""
    follow_request = (
        FollowRequest.objects.select_for_update()
        .filter(pk=request_id, status=FollowRequest.RequestStatus.PENDING)
        .first()
    )
    if follow_request is None:
        raise NotFound("Request not found or already processed.")
    if follow_request.recipient_id != recipient.pk:
        raise PermissionDenied("Only the recipient can resolve this request.")
    return follow_request


def approve_request(recipient: Profile, request_id: int) -> FollowRequest:
    """
    Accept a pending request as one atomic unit: edge, counters,
    follow_accepted notification, request removal and stale
    follow_request notification cleanup.
    An edge created by a concurrent approval is treated as success.
    """
    with transaction.atomic():
        follow_request = _lock_pending_request(recipient, request_id)
        requester_id = follow_request.requester_id

        try:
            with transaction.atomic():
                _, created = Follow.objects.get_or_create(
                    follower_id=requester_id, following_id=recipient.pk
                )
        except IntegrityError:
            created = False

        if created:
            notifications.notify(
                recipient=follow_request.requester,
                actor=recipient,
                type=Notification.NotificationType.FOLLOW_ACCEPTED,
                entity_type=Notification.EntityType.USER,
                entity_id=recipient.pk,
            )
        else:
            logger.debug(
                f"Edge {requester_id} -> {recipient.pk} already existed, "
                f"dropping request #{follow_request.pk}"
            )

        follow_request.delete()
        notifications.clear_follow_request(recipient.pk, requester_id)

    follow_request.pk = request_id
    follow_request.status = FollowRequest.RequestStatus.ACCEPTED
    logger.info(f"Follow request #{request_id} accepted by profile {recipient.pk}")
    return follow_request


def reject_request(recipient: Profile, request_id: int) -> FollowRequest:
    """Drop the request and its notification; counters are untouched."""
    with transaction.atomic():
        follow_request = _lock_pending_request(recipient, request_id)
        follow_request.delete()
        notifications.clear_follow_request(recipient.pk, follow_request.requester_id)

    follow_request.pk = request_id
    follow_request.status = FollowRequest.RequestStatus.REJECTED
    logger.info(f"Follow request #{request_id} rejected by profile {recipient.pk}")
    return follow_request


def cancel_request(requester: Profile, target: Profile) -> bool:
    """Requester withdraws a pending request. Returns True if one existed."""
    with transaction.atomic():
        deleted, _ = FollowRequest.objects.filter(
            requester=requester,
            recipient=target,
            status=FollowRequest.RequestStatus.PENDING,
        ).delete()
        if deleted:
            notifications.clear_follow_request(target.pk, requester.pk)
    return bool(deleted)


def unfollow(follower: Profile, target: Profile) -> str:
    """
    Remove the edge (counters clamp at zero). Without an edge, a pending
    request is cancelled instead. Returns a short description of what happened.
    """
    if follower.pk == target.pk:
        raise SelfFollow("Cannot unfollow yourself.")

    with transaction.atomic():
        deleted, _ = Follow.objects.filter(
            follower=follower, following=target
        ).delete()

    if deleted:
        logger.info(f"Profile {follower.pk} unfollowed {target.pk}")
        return "unfollowed"
    if cancel_request(follower, target):
        return "request_cancelled"
    return NOT_FOLLOWING


def follow_status(viewer: Profile, target: Profile) -> str:
    if Follow.objects.filter(follower=viewer, following=target).exists():
        return FOLLOWING
    if FollowRequest.objects.filter(
        requester=viewer,
        recipient=target,
        status=FollowRequest.RequestStatus.PENDING,
    ).exists():
        return REQUESTED
    return NOT_FOLLOWING


def block(blocker: Profile, target: Profile) -> bool:
    """Block target and sever every edge and pending request between the pair."""
    if blocker.pk == target.pk:
        raise SelfFollow("Cannot block yourself.")

    with transaction.atomic():
        _, created = Block.objects.get_or_create(blocker=blocker, blocked=target)
        Follow.objects.filter(follower=blocker, following=target).delete()
        Follow.objects.filter(follower=target, following=blocker).delete()
        FollowRequest.objects.filter(requester=blocker, recipient=target).delete()
        FollowRequest.objects.filter(requester=target, recipient=blocker).delete()
        notifications.clear_follow_request(blocker.pk, target.pk)
        notifications.clear_follow_request(target.pk, blocker.pk)

    if created:
        logger.info(f"Profile {blocker.pk} blocked {target.pk}")
    return created


def unblock(blocker: Profile, target: Profile) -> bool:
    deleted, _ = Block.objects.filter(blocker=blocker, blocked=target).delete()
    return bool(deleted)


def detach_profile(profile: Profile) -> None:
    """Remove all edges and requests of a profile that is being soft-deleted."""
    with transaction.atomic():
        Follow.objects.filter(follower=profile).delete()
        Follow.objects.filter(following=profile).delete()
        FollowRequest.objects.filter(requester=profile).delete()
        FollowRequest.objects.filter(recipient=profile).delete()


def pending_requests(recipient: Profile):
    return (
        FollowRequest.objects.select_related("requester")
        .filter(
            recipient=recipient,
            status=FollowRequest.RequestStatus.PENDING,
            requester__is_deleted=False,
        )
        .order_by("-created_at")
    )


def sent_requests(requester: Profile):
    return (
        FollowRequest.objects.select_related("recipient")
        .filter(requester=requester, status=FollowRequest.RequestStatus.PENDING)
        .order_by("-created_at")
    )


def suggested_profiles(profile: Profile, queryset=None, limit: int = SUGGESTION_LIMIT):
    """
    Profiles worth following: not me, not already followed, not blocked
    either way, and not opted out of suggestions. Most followed first,
    then most recently active.
    """
    if queryset is None:
        queryset = Profile.active.all()

    followed_ids = Follow.objects.filter(follower=profile).values("following_id")
    blocked = Block.objects.filter(
        Q(blocker_id=profile.pk, blocked_id=OuterRef("pk"))
        | Q(blocker_id=OuterRef("pk"), blocked_id=profile.pk)
    )
    return (
        queryset.filter(allow_suggestions=True)
        .exclude(pk=profile.pk)
        .exclude(pk__in=followed_ids)
        .exclude(Exists(blocked))
        .order_by(
            "-followers_count",
            F("presence__last_active").desc(nulls_last=True),
            "-created_at",
        )[:limit]
    )
