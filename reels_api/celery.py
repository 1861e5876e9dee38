import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "reels_api.settings")

app = Celery("reels_api")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

app.conf.beat_schedule = {
    "reconcile-follow-counters": {
        "task": "networking.tasks.reconcile_follow_counters",
        "schedule": crontab(minute=0, hour=3),
    },
    "purge-read-notifications": {
        "task": "notifications.tasks.purge_read_notifications",
        "schedule": crontab(minute=30, hour=3),
    },
}
