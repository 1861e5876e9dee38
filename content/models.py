from django.db import models
from django.utils import timezone
from django.utils.translation import gettext as _


class Video(models.Model):
    """
    Reel reference. Media lives in external storage; the API only needs
    the owner, the playable url and a thumbnail.
    """

    owner = models.ForeignKey(
        "user.Profile",
        on_delete=models.CASCADE,
        related_name="videos",
        verbose_name=_("owner"),
    )
    title = models.CharField(max_length=100, verbose_name=_("title"))
    description = models.TextField(max_length=2000, blank=True)
    video_url = models.URLField(max_length=500)
    thumbnail_url = models.URLField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["-created_at"], name="video_created_idx"),
            models.Index(fields=["owner", "-created_at"], name="video_owner_idx"),
        ]

    def __str__(self):
        return f"Video: {self.title}, (#{self.id})"


class Like(models.Model):
    """Like sign on a video."""

    video = models.ForeignKey(Video, on_delete=models.CASCADE, related_name="likes")
    user = models.ForeignKey(
        "user.Profile",
        on_delete=models.CASCADE,
        related_name="likes",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["video", "user"],
                name="unique_like_user",
            ),
        ]
        indexes = [
            models.Index(fields=["video"], name="like_video_idx"),
            models.Index(fields=["user", "-created_at"], name="like_user_created_idx"),
        ]


class Comment(models.Model):
    """Comment on a video with support threads and a likes set."""

    video = models.ForeignKey(Video, on_delete=models.CASCADE, related_name="comments")
    author = models.ForeignKey(
        "user.Profile", on_delete=models.CASCADE, related_name="comments"
    )
    text = models.TextField(max_length=1000)
    parent = models.ForeignKey(
        "self",
        blank=True,
        null=True,
        on_delete=models.SET_NULL,
        related_name="children",
    )
    likes = models.ManyToManyField(
        "user.Profile", related_name="liked_comments", blank=True
    )
    is_deleted = models.BooleanField(default=False)
    deleted_by = models.ForeignKey(
        "user.Profile",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["video", "-created_at"], name="comment_video_created_idx"
            ),
            models.Index(
                fields=["author", "-created_at"], name="comment_author_created_idx"
            ),
        ]

    def __str__(self):
        return f"Comment: {self.text}"


class Bookmark(models.Model):
    """
    "Worth revisiting" mark. Repeating the bookmark bumps revisit_count
    instead of creating another row.
    """

    user = models.ForeignKey(
        "user.Profile", on_delete=models.CASCADE, related_name="bookmarks"
    )
    video = models.ForeignKey(
        Video, on_delete=models.CASCADE, related_name="bookmarks"
    )
    revisit_count = models.PositiveIntegerField(default=0)
    last_visited_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "video"], name="unique_bookmark_user"
            ),
        ]
        indexes = [
            models.Index(
                fields=["user", "-revisit_count"], name="bookmark_memory_idx"
            ),
            models.Index(
                fields=["user", "-last_visited_at"], name="bookmark_recent_idx"
            ),
        ]


class Share(models.Model):
    class ShareType(models.TextChoices):
        COPY_LINK = "copy_link"
        SEND_USER = "send_user"
        EXTERNAL = "external"

    user = models.ForeignKey(
        "user.Profile", on_delete=models.CASCADE, related_name="shares"
    )
    video = models.ForeignKey(Video, on_delete=models.CASCADE, related_name="shares")
    share_type = models.CharField(max_length=10, choices=ShareType.choices)
    recipient = models.ForeignKey(
        "user.Profile",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="received_shares",
    )
    external_platform = models.CharField(max_length=50, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["video"], name="share_video_idx"),
            models.Index(fields=["user", "-created_at"], name="share_user_created_idx"),
        ]
