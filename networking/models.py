from django.db import models
from django.db.models import Q, F


class Follow(models.Model):
    """Directed edge follower -> following. Exists only once accepted."""

    follower = models.ForeignKey(
        "user.Profile", on_delete=models.CASCADE, related_name="following_links"
    )
    following = models.ForeignKey(
        "user.Profile", on_delete=models.CASCADE, related_name="follower_links"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["follower", "following"], name="unique_follow_profile"
            ),
            models.CheckConstraint(
                condition=~Q(follower=F("following")), name="no_self_follow_profile"
            ),
        ]
        indexes = [
            models.Index(fields=["follower", "-created_at"], name="follow_follower_idx"),
            models.Index(fields=["following", "-created_at"], name="follow_following_idx"),
        ]

    def __str__(self):
        return f"{self.follower_id} -> {self.following_id}"


class FollowRequest(models.Model):
    """
    Pending request to follow a profile that requires approval.
    Resolved requests are deleted; ACCEPTED/REJECTED are only reported
    back to the caller that resolved them.
    """

    class RequestStatus(models.TextChoices):
        PENDING = "pending"
        ACCEPTED = "accepted"
        REJECTED = "rejected"

    requester = models.ForeignKey(
        "user.Profile", on_delete=models.CASCADE, related_name="sent_follow_requests"
    )
    recipient = models.ForeignKey(
        "user.Profile",
        on_delete=models.CASCADE,
        related_name="received_follow_requests",
    )
    status = models.CharField(
        max_length=10,
        choices=RequestStatus.choices,
        default=RequestStatus.PENDING,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["requester", "recipient"],
                condition=Q(status="pending"),
                name="unique_pending_follow_request",
            ),
            models.CheckConstraint(
                condition=~Q(requester=F("recipient")),
                name="no_self_follow_request",
            ),
        ]
        indexes = [
            models.Index(
                fields=["recipient", "status", "-created_at"],
                name="followreq_recipient_idx",
            ),
        ]

    def __str__(self):
        return f"FollowRequest #{self.pk}: {self.requester_id} -> {self.recipient_id}"


class Block(models.Model):
    blocker = models.ForeignKey(
        "user.Profile", on_delete=models.CASCADE, related_name="blocking_links"
    )
    blocked = models.ForeignKey(
        "user.Profile", on_delete=models.CASCADE, related_name="blocked_by_links"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["blocker", "blocked"], name="unique_block"),
            models.CheckConstraint(
                condition=~Q(blocker=F("blocked")), name="no_self_block"
            ),
        ]

    @classmethod
    def exists_between(cls, first_id: int, second_id: int) -> bool:
        return cls.objects.filter(
            Q(blocker_id=first_id, blocked_id=second_id)
            | Q(blocker_id=second_id, blocked_id=first_id)
        ).exists()
