from django.db.models import F
from django.db.models.functions import Greatest
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from networking.models import Follow
from user.models import Profile


@receiver(post_save, sender=Follow)
def _update_counters_on_save(sender, instance: Follow, created, **kwargs):
    """
    Keep followers_count/following_count in step with edge creation.
    Runs inside the caller's transaction, so the edge and both counters
    commit or roll back together.
    """
    if not created:
        return

    Profile.objects.filter(pk=instance.follower_id).update(
        following_count=F("following_count") + 1
    )
    Profile.objects.filter(pk=instance.following_id).update(
        followers_count=F("followers_count") + 1
    )


@receiver(post_delete, sender=Follow)
def _update_counters_on_delete(sender, instance: Follow, **kwargs):
    Profile.objects.filter(pk=instance.follower_id).update(
        following_count=Greatest(F("following_count") - 1, 0)
    )
    Profile.objects.filter(pk=instance.following_id).update(
        followers_count=Greatest(F("followers_count") - 1, 0)
    )
