import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from notifications.models import Notification
from user.models import Profile

logger = logging.getLogger(__name__)

# Types where repeated events on one entity collapse into one unread row.
COALESCED_TYPES = {Notification.NotificationType.LIKE}

TEXT_MAX_LENGTH = Notification._meta.get_field("text").max_length


def snippet(text: str, length: int) -> str:
    """Short preview of user text, with an ellipsis when cut."""
    text = (text or "").strip()
    if len(text) <= length:
        return text
    return f"{text[:length]}..."


def notify(
    recipient: Profile,
    actor: Profile,
    type: str,
    entity_type: str = "",
    entity_id: int | None = None,
    text: str = "",
) -> Notification | None:
    """
    Write a notification for recipient about actor's action.
    Self-notifications and notifications to deleted profiles are skipped.
    """
    if recipient.pk == actor.pk or recipient.is_deleted:
        return None

    text = (text or "")[:TEXT_MAX_LENGTH]

    if type in COALESCED_TYPES and entity_id is not None:
        with transaction.atomic():
            existing = (
                Notification.objects.select_for_update()
                .filter(
                    recipient=recipient,
                    type=type,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    read=False,
                )
                .order_by("-created_at")
                .first()
            )
            if existing is not None:
                existing.actor = actor
                existing.text = text
                existing.created_at = timezone.now()
                existing.save(
                    update_fields=["actor", "text", "created_at", "updated_at"]
                )
                logger.debug(
                    f"Coalesced {type} notification #{existing.pk} "
                    f"for profile {recipient.pk}"
                )
                return existing

            return Notification.objects.create(
                recipient=recipient,
                actor=actor,
                type=type,
                entity_type=entity_type,
                entity_id=entity_id,
                text=text,
            )

    return Notification.objects.create(
        recipient=recipient,
        actor=actor,
        type=type,
        entity_type=entity_type,
        entity_id=entity_id,
        text=text,
    )


def list_for(recipient: Profile, limit: int | None = None, unread_only=False):
    """Newest first, capped at limit."""
    limit = limit or settings.NOTIFICATION_LIST_LIMIT
    queryset = Notification.objects.filter(recipient=recipient)
    if unread_only:
        queryset = queryset.filter(read=False)
    return list(queryset.order_by("-created_at", "-id")[:limit])


def unread_count(recipient: Profile) -> int:
    return Notification.objects.filter(recipient=recipient, read=False).count()


def mark_read(recipient: Profile, ids) -> int:
    """Mark owned notifications read; foreign or unknown ids are ignored."""
    return Notification.objects.filter(recipient=recipient, id__in=ids).update(
        read=True
    )


def mark_all_read(recipient: Profile) -> int:
    return Notification.objects.filter(recipient=recipient, read=False).update(
        read=True
    )


def dismiss(recipient: Profile, notification_id: int) -> None:
    deleted, _ = Notification.objects.filter(
        recipient=recipient, id=notification_id
    ).delete()
    if not deleted:
        raise NotFound("Notification not found.")


def clear_follow_request(recipient_id: int, actor_id: int) -> int:
    """Remove follow_request notifications that a resolved request made stale."""
    deleted, _ = Notification.objects.filter(
        recipient_id=recipient_id,
        actor_id=actor_id,
        type=Notification.NotificationType.FOLLOW_REQUEST,
    ).delete()
    return deleted


def context_media(notifications) -> dict[int, str]:
    """
    {notification_id: thumbnail_url} for Reel entities and for comments
    (via the commented video). Missing entities are left out.
    """
    from content.models import Comment, Video

    reel_ids = {
        n.entity_id
        for n in notifications
        if n.entity_type == Notification.EntityType.REEL and n.entity_id
    }
    comment_ids = {
        n.entity_id
        for n in notifications
        if n.entity_type == Notification.EntityType.COMMENT and n.entity_id
    }

    comment_videos = dict(
        Comment.objects.filter(id__in=comment_ids).values_list("id", "video_id")
    )
    thumbnails = dict(
        Video.objects.filter(id__in=reel_ids | set(comment_videos.values()))
        .exclude(thumbnail_url="")
        .values_list("id", "thumbnail_url")
    )

    media = {}
    for n in notifications:
        if n.entity_type == Notification.EntityType.REEL:
            url = thumbnails.get(n.entity_id)
        elif n.entity_type == Notification.EntityType.COMMENT:
            url = thumbnails.get(comment_videos.get(n.entity_id))
        else:
            url = None
        if url:
            media[n.pk] = url
    return media
