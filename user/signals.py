from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from user.cache import invalidate_profile_card
from user.models import Profile


@receiver(post_save, sender=Profile)
@receiver(post_delete, sender=Profile)
def _drop_cached_card(sender, instance: Profile, **kwargs):
    """Best-effort invalidation; the TTL bounds staleness anyway."""
    invalidate_profile_card(instance.pk)
