import logging

from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.text import slugify

from user.models import Profile

logger = logging.getLogger(__name__)

USERNAME_MAX_LENGTH = Profile._meta.get_field("username").max_length


def unique_username(email: str) -> str:
    """Handle derived from the email local part, suffixed until free."""
    base = slugify(email.split("@")[0])[: USERNAME_MAX_LENGTH - 6] or "user"
    candidate = base
    suffix = 1
    while Profile.objects.filter(username=candidate).exists():
        suffix += 1
        candidate = f"{base}{suffix}"
    return candidate


def ensure_profile(user) -> tuple[Profile, bool]:
    """Return (profile, created) for user, creating it on first access."""
    try:
        return Profile.objects.get(user=user), False
    except Profile.DoesNotExist:
        pass

    for _ in range(3):
        try:
            with transaction.atomic():
                profile = Profile.objects.create(
                    user=user, username=unique_username(user.email)
                )
            return profile, True
        except IntegrityError:
            # either another worker created the profile or the handle was taken
            existing = Profile.objects.filter(user=user).first()
            if existing is not None:
                return existing, False

    raise IntegrityError(f"Could not allocate a username for user {user.pk}")


def soft_delete_account(user) -> Profile:
    """
    Flag the profile deleted, drop its follow graph so the other side's
    counters stay right, and deactivate the login.
    """
    from networking.services import detach_profile

    with transaction.atomic():
        profile = Profile.objects.select_for_update().get(user=user)
        detach_profile(profile)
        profile.is_deleted = True
        profile.deleted_at = timezone.now()
        profile.save(update_fields=["is_deleted", "deleted_at", "updated_at"])
        user.is_active = False
        user.save(update_fields=["is_active"])

    logger.info(f"Soft deleted profile {profile.pk} of user {user.pk}")
    return profile
