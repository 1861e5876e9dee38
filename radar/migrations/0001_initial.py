import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("content", "0001_initial"),
        ("user", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Presence",
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
                ("last_active", models.DateTimeField()),
                (
                    "activity",
                    models.CharField(
                        choices=[
                            ("watching", "Watching"),
                            ("uploading", "Uploading"),
                            ("idle", "Idle"),
                        ],
                        default="idle",
                        max_length=10,
                    ),
                ),
                (
                    "profile",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="presence",
                        to="user.profile",
                    ),
                ),
                (
                    "video",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="content.video",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["-last_active"], name="presence_active_idx"),
                ],
            },
        ),
    ]
