from django.db import models
from django.utils import timezone


class Notification(models.Model):
    """Fan-out record written as a side effect of a social action."""

    class NotificationType(models.TextChoices):
        LIKE = "like"
        COMMENT = "comment"
        FOLLOW = "follow"
        MENTION = "mention"
        FOLLOW_REQUEST = "follow_request"
        FOLLOW_ACCEPTED = "follow_accepted"

    class EntityType(models.TextChoices):
        REEL = "Reel"
        COMMENT = "Comment"
        USER = "User"
        FOLLOW_REQUEST = "FollowRequest"

    recipient = models.ForeignKey(
        "user.Profile", on_delete=models.CASCADE, related_name="notifications"
    )
    actor = models.ForeignKey(
        "user.Profile", on_delete=models.CASCADE, related_name="+"
    )
    type = models.CharField(max_length=20, choices=NotificationType.choices)
    entity_type = models.CharField(
        max_length=20, choices=EntityType.choices, blank=True, default=""
    )
    entity_id = models.PositiveBigIntegerField(null=True, blank=True)
    text = models.CharField(max_length=100, blank=True)
    read = models.BooleanField(default=False)
    # Bumped when repeated likes are coalesced into this row.
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["recipient", "-created_at"], name="notif_recipient_created_idx"
            ),
            models.Index(fields=["recipient", "read"], name="notif_recipient_read_idx"),
            models.Index(
                fields=["recipient", "type", "entity_type", "entity_id"],
                name="notification_coalesce_idx",
                condition=models.Q(read=False),
            ),
        ]

    def __str__(self):
        return f"{self.type} for {self.recipient_id} by {self.actor_id}"
