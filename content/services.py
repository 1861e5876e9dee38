import logging
import re

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from content.models import Bookmark, Comment, Like, Share, Video
from networking.models import Block, Follow
from notifications import services as notifications
from notifications.models import Notification
from user.models import Profile

logger = logging.getLogger(__name__)

MENTION_RE = re.compile(r"(?<!\w)@([\w-]{1,50})", flags=re.UNICODE)


def like_count(video: Video) -> int:
    return Like.objects.filter(video=video).count()


def like_video(user: Profile, video: Video) -> tuple[bool, int]:
    """
    Returns (created, like_count). A repeated like is a no-op.
    The owner gets one coalesced unread "like" notification per video.
    """
    try:
        with transaction.atomic():
            Like.objects.create(user=user, video=video)
            notifications.notify(
                recipient=video.owner,
                actor=user,
                type=Notification.NotificationType.LIKE,
                entity_type=Notification.EntityType.REEL,
                entity_id=video.pk,
            )
    except IntegrityError:
        logger.debug(f"Profile {user.pk} already liked video {video.pk}")
        return False, like_count(video)

    return True, like_count(video)


def unlike_video(user: Profile, video: Video) -> int:
    Like.objects.filter(user=user, video=video).delete()
    return like_count(video)


def bookmark_video(user: Profile, video: Video) -> tuple[Bookmark, bool]:
    """
    First call creates the bookmark; later calls count a revisit.
    Returns (bookmark, created).
    """
    now = timezone.now()
    try:
        with transaction.atomic():
            bookmark = Bookmark.objects.create(
                user=user, video=video, revisit_count=0, last_visited_at=now
            )
        return bookmark, True
    except IntegrityError:
        pass

    Bookmark.objects.filter(user=user, video=video).update(
        revisit_count=F("revisit_count") + 1, last_visited_at=now
    )
    return Bookmark.objects.get(user=user, video=video), False


def remove_bookmark(user: Profile, video: Video) -> bool:
    deleted, _ = Bookmark.objects.filter(user=user, video=video).delete()
    return bool(deleted)


BOOKMARK_ORDERINGS = {
    "memory": ("-revisit_count", "-last_visited_at"),
    "recent": ("-last_visited_at",),
}


def bookmarks_for(user: Profile, sort: str = "memory"):
    if sort not in BOOKMARK_ORDERINGS:
        raise ValidationError({"sort": f"Expected one of {sorted(BOOKMARK_ORDERINGS)}."})
    return (
        Bookmark.objects.select_related("video__owner")
        .filter(user=user, video__owner__is_deleted=False)
        .order_by(*BOOKMARK_ORDERINGS[sort])
    )


def toggle_comment_like(user: Profile, comment: Comment) -> tuple[bool, int]:
    """
    Add or remove user from the comment's likes.
    Returns (liked, like_count); only an add notifies the author.
    """
    with transaction.atomic():
        # lock the comment row so concurrent toggles serialise
        comment = Comment.objects.select_for_update().get(pk=comment.pk)
        already_liked = comment.likes.filter(pk=user.pk).exists()

        if already_liked:
            comment.likes.remove(user)
        else:
            comment.likes.add(user)
            notifications.notify(
                recipient=comment.author,
                actor=user,
                type=Notification.NotificationType.LIKE,
                entity_type=Notification.EntityType.COMMENT,
                entity_id=comment.pk,
                text=f'liked your comment: "{notifications.snippet(comment.text, 20)}"',
            )

    return not already_liked, comment.likes.count()


def share_count(video: Video) -> int:
    return Share.objects.filter(video=video).count()


def record_share(
    user: Profile,
    video: Video,
    share_type: str,
    recipient: Profile | None = None,
    external_platform: str = "",
) -> int:
    if share_type == Share.ShareType.SEND_USER and recipient is None:
        raise ValidationError({"recipient_id": "Required when sending to a user."})

    Share.objects.create(
        user=user,
        video=video,
        share_type=share_type,
        recipient=recipient if share_type == Share.ShareType.SEND_USER else None,
        external_platform=external_platform or "",
    )
    return share_count(video)


def _follows(follower_id: int, following_id: int) -> bool:
    return Follow.objects.filter(
        follower_id=follower_id, following_id=following_id
    ).exists()


def can_comment(author: Profile, video: Video) -> bool:
    owner = video.owner
    if owner.pk == author.pk:
        return True
    if Block.exists_between(author.pk, owner.pk):
        return False
    if owner.comment_permission == Profile.CommentPermission.NO_ONE:
        return False
    if owner.comment_permission == Profile.CommentPermission.FOLLOWERS:
        return _follows(author.pk, owner.pk)
    return True


def extract_mentions(text: str) -> list[str]:
    return list(dict.fromkeys(m.lower() for m in MENTION_RE.findall(text or "")))


def create_comment(
    author: Profile, video: Video, text: str, parent: Comment | None = None
) -> Comment:
    """
    Store a comment after the owner's comment_permission check, then notify
    the owner and every mentioned profile that accepts mentions from author.
    """
    if not can_comment(author, video):
        raise PermissionDenied("You are not allowed to comment on this video.")

    text = text.strip()
    with transaction.atomic():
        comment = Comment.objects.create(
            video=video, author=author, text=text, parent=parent
        )
        notifications.notify(
            recipient=video.owner,
            actor=author,
            type=Notification.NotificationType.COMMENT,
            entity_type=Notification.EntityType.REEL,
            entity_id=video.pk,
            text=text[:50],
        )

        mentioned = Profile.active.filter(username__in=extract_mentions(text)).exclude(
            pk=author.pk
        )
        for profile in mentioned:
            if (
                profile.mention_permission == Profile.MentionPermission.FOLLOWERS
                and not _follows(author.pk, profile.pk)
            ):
                continue
            if Block.exists_between(author.pk, profile.pk):
                continue
            notifications.notify(
                recipient=profile,
                actor=author,
                type=Notification.NotificationType.MENTION,
                entity_type=Notification.EntityType.REEL,
                entity_id=video.pk,
                text=text[:50],
            )

    logger.info(f"Comment #{comment.pk} by {author.pk} on video {video.pk}")
    return comment


def delete_comment(actor: Profile, comment: Comment) -> None:
    """Soft delete by the comment author or the video owner."""
    if actor.pk not in (comment.author_id, comment.video.owner_id):
        raise PermissionDenied("You cannot delete this comment.")
    comment.is_deleted = True
    comment.deleted_by = actor
    comment.save(update_fields=["is_deleted", "deleted_by", "updated_at"])
