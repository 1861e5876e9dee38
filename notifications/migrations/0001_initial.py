import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("user", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("like", "Like"),
                            ("comment", "Comment"),
                            ("follow", "Follow"),
                            ("mention", "Mention"),
                            ("follow_request", "Follow Request"),
                            ("follow_accepted", "Follow Accepted"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "entity_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("Reel", "Reel"),
                            ("Comment", "Comment"),
                            ("User", "User"),
                            ("FollowRequest", "Follow Request"),
                        ],
                        default="",
                        max_length=20,
                    ),
                ),
                (
                    "entity_id",
                    models.PositiveBigIntegerField(blank=True, null=True),
                ),
                ("text", models.CharField(blank=True, max_length=100)),
                ("read", models.BooleanField(default=False)),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "actor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to="user.profile",
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to="user.profile",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["recipient", "-created_at"],
                        name="notif_recipient_created_idx",
                    ),
                    models.Index(
                        fields=["recipient", "read"], name="notif_recipient_read_idx"
                    ),
                    models.Index(
                        condition=models.Q(("read", False)),
                        fields=["recipient", "type", "entity_type", "entity_id"],
                        name="notification_coalesce_idx",
                    ),
                ],
            },
        ),
    ]
