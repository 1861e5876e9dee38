from datetime import datetime, timedelta

from django.conf import settings
from django.db.models import Exists, OuterRef, Q
from django.utils import timezone

from networking.models import Block, Follow
from radar.models import Presence
from user.models import Profile


def active_cutoff(now: datetime | None = None, threshold: int | None = None) -> datetime:
    now = now or timezone.now()
    return now - timedelta(seconds=threshold or settings.RADAR_ACTIVE_SECONDS)


def online_cutoff(now: datetime | None = None) -> datetime:
    """Looser window used for the "online" dot on network lists."""
    now = now or timezone.now()
    return now - timedelta(seconds=settings.NETWORK_ONLINE_SECONDS)


def record_activity(profile: Profile, activity=Presence.Activity.IDLE, video=None):
    """Heartbeat from a client: bump last_active and store the activity tag."""
    presence, _ = Presence.objects.update_or_create(
        profile=profile,
        defaults={
            "last_active": timezone.now(),
            "activity": activity,
            "video": video,
        },
    )
    return presence


def is_active(
    presence: Presence | None,
    now: datetime | None = None,
    threshold: int | None = None,
) -> bool:
    """Missing or stale presence simply means "not active"."""
    if presence is None:
        return False
    return presence.last_active >= active_cutoff(now, threshold)


def live_snapshot(
    profile: Profile,
    limit: int | None = None,
    fill_to: int | None = None,
    now: datetime | None = None,
) -> list[Presence]:
    """
    Active followed profiles first. When the network is quiet (fewer than
    fill_to active), pad with other active profiles, most recent first.
    Profiles on either side of a block never appear.
    """
    limit = limit or settings.RADAR_LIVE_LIMIT
    fill_to = fill_to or settings.RADAR_FILL_TO
    cutoff = active_cutoff(now)

    blocked = Block.objects.filter(
        Q(blocker_id=profile.pk, blocked_id=OuterRef("profile_id"))
        | Q(blocker_id=OuterRef("profile_id"), blocked_id=profile.pk)
    )
    base = (
        Presence.objects.select_related("profile")
        .filter(last_active__gte=cutoff, profile__is_deleted=False)
        .exclude(Exists(blocked))
    )
    following_ids = Follow.objects.filter(follower=profile).values("following_id")

    snapshot = list(
        base.filter(profile_id__in=following_ids).order_by("-last_active")[:limit]
    )

    if len(snapshot) < fill_to:
        exclude_ids = [presence.profile_id for presence in snapshot] + [profile.pk]
        snapshot += list(
            base.exclude(profile_id__in=exclude_ids)
            .exclude(profile__appear_in_discover=False)
            .order_by("-last_active")[: fill_to - len(snapshot)]
        )

    return snapshot
