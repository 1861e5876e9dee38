from celery import shared_task
from django.contrib.auth import get_user_model
import logging

from user.services import ensure_profile

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def create_user_profile_task(self, user_id):
    """
    Asynchronously creates a Profile for a newly created User.
    Args:
        user_id: The ID of the User for whom to create a Profile.
    """
    User = get_user_model()
    try:
        user = User.objects.get(id=user_id)
        profile, created = ensure_profile(user)

        if created:
            logger.info(
                f"Created profile @{profile.username} for user {user.email} "
                f"(ID: {user_id})"
            )
        else:
            logger.info(f"Profile already exists for user {user.email} (ID: {user_id})")

        return created

    except User.DoesNotExist:
        logger.error(f"User with ID {user_id} not found")
        return False
    except Exception as e:
        logger.error(f"Failed to create profile for user ID {user_id}: {str(e)}")
        raise self.retry(exc=e, countdown=5)
