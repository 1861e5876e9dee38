import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from notifications.models import Notification

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def purge_read_notifications(self, batch_size=1000):
    """
    Periodically deletes read notifications older than
    NOTIFICATION_RETENTION_DAYS, in batches. Unread rows are never purged.
    """
    try:
        cutoff = timezone.now() - timedelta(days=settings.NOTIFICATION_RETENTION_DAYS)
        total_deleted = 0

        while True:
            with transaction.atomic():
                expired_ids = list(
                    Notification.objects.filter(
                        read=True, created_at__lt=cutoff
                    ).values_list("id", flat=True)[:batch_size]
                )

                if not expired_ids:
                    break

                deleted_count, _ = Notification.objects.filter(
                    id__in=expired_ids
                ).delete()

                total_deleted += deleted_count
                logger.info(f"Deleted {deleted_count} notifications in batch")

                if len(expired_ids) < batch_size:
                    break

        logger.info(f"Total deleted {total_deleted} read notifications")
        return total_deleted

    except Exception as e:
        logger.error(f"Failed to purge read notifications: {str(e)}")
        raise self.retry(exc=e, countdown=5)
