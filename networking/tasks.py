import logging

from celery import shared_task
from django.db import transaction
from django.db.models import Count, IntegerField, OuterRef, Subquery, Value
from django.db.models.functions import Coalesce

from networking.models import Follow
from user.models import Profile

logger = logging.getLogger(__name__)


def _edge_count(field):
    edges = (
        Follow.objects.filter(**{field: OuterRef("pk")})
        .order_by()
        .values(field)
        .annotate(total=Count("pk"))
        .values("total")
    )
    return Coalesce(Subquery(edges, output_field=IntegerField()), Value(0))


def reconcile_counters(batch_size=500) -> int:
    """
    Recount followers_count/following_count from Follow edges in id order.
    Returns the number of profiles whose counters were corrected.
    """
    fixed = 0
    last_id = 0

    while True:
        with transaction.atomic():
            batch = list(
                Profile.objects.filter(pk__gt=last_id)
                .order_by("pk")
                .annotate(
                    real_followers=_edge_count("following"),
                    real_following=_edge_count("follower"),
                )
                .values(
                    "pk",
                    "followers_count",
                    "following_count",
                    "real_followers",
                    "real_following",
                )[:batch_size]
            )

            if not batch:
                break

            for row in batch:
                if (
                    row["followers_count"] != row["real_followers"]
                    or row["following_count"] != row["real_following"]
                ):
                    Profile.objects.filter(pk=row["pk"]).update(
                        followers_count=row["real_followers"],
                        following_count=row["real_following"],
                    )
                    fixed += 1
                    logger.warning(
                        f"Profile {row['pk']} counters drifted: "
                        f"followers {row['followers_count']}->{row['real_followers']}, "
                        f"following {row['following_count']}->{row['real_following']}"
                    )

            last_id = batch[-1]["pk"]
            if len(batch) < batch_size:
                break

    logger.info(f"Reconciled follow counters, {fixed} profiles corrected")
    return fixed


@shared_task(bind=True)
def reconcile_follow_counters(self, batch_size=500):
    """Nightly safety net for the materialized follow counters."""
    try:
        return reconcile_counters(batch_size=batch_size)
    except Exception as e:
        logger.error(f"Failed to reconcile follow counters: {str(e)}")
        raise self.retry(exc=e, countdown=60)
