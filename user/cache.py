"""
Read-through cache of profile "cards" (display data only).

Cards may be up to PROFILE_CARD_CACHE_TTL seconds stale. They are used for
read-side enrichment and must never back authorization or counter logic.
"""

from django.conf import settings
from django.core.cache import cache

from user.models import Profile

CARD_FIELDS = ("id", "username", "display_name", "profile_picture")


def profile_card_key(profile_id: int) -> str:
    return f"profile-card:{profile_id}"


def build_card(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "username": profile.username,
        "display_name": profile.full_name,
        "avatar_url": profile.profile_picture.url if profile.profile_picture else None,
    }


def get_profile_cards(profile_ids) -> dict[int, dict]:
    """Return {profile_id: card}; unknown ids are simply absent."""
    ids = {pid for pid in profile_ids if pid is not None}
    if not ids:
        return {}

    keys = {profile_card_key(pid): pid for pid in ids}
    cached = cache.get_many(list(keys))
    cards = {keys[key]: card for key, card in cached.items()}

    missing = ids - cards.keys()
    if missing:
        fresh = {
            profile.id: build_card(profile)
            for profile in Profile.objects.filter(id__in=missing).only(*CARD_FIELDS)
        }
        cache.set_many(
            {profile_card_key(pid): card for pid, card in fresh.items()},
            timeout=settings.PROFILE_CARD_CACHE_TTL,
        )
        cards.update(fresh)

    return cards


def invalidate_profile_card(profile_id: int) -> None:
    cache.delete(profile_card_key(profile_id))
