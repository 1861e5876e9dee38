from django.db import models


class Presence(models.Model):
    """Last-known activity of a profile. Ephemeral, polled by clients."""

    class Activity(models.TextChoices):
        WATCHING = "watching"
        UPLOADING = "uploading"
        IDLE = "idle"

    profile = models.OneToOneField(
        "user.Profile", on_delete=models.CASCADE, related_name="presence"
    )
    last_active = models.DateTimeField()
    activity = models.CharField(
        max_length=10, choices=Activity.choices, default=Activity.IDLE
    )
    video = models.ForeignKey(
        "content.Video",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        indexes = [models.Index(fields=["-last_active"], name="presence_active_idx")]

    def __str__(self):
        return f"{self.profile_id} {self.activity} @ {self.last_active:%H:%M:%S}"
