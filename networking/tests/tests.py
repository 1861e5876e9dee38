import itertools
from datetime import timedelta
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db.utils import IntegrityError, OperationalError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.reverse import reverse
from rest_framework.test import APIClient

from networking import services
from networking.models import Block, Follow, FollowRequest
from networking.tasks import reconcile_counters
from notifications.models import Notification
from radar.models import Presence
from user.models import Profile


PROFILES_LIST_URL = reverse("networking:profiles-list")
FOLLOW_REQUESTS_URL = reverse("networking:follow-requests-list")
SENT_REQUESTS_URL = reverse("networking:follow-requests-sent")
MY_FOLLOWERS_URL = reverse("networking:profiles-my-followers")
MY_FOLLOWING_URL = reverse("networking:profiles-my-following")
SUGGESTED_URL = reverse("networking:profiles-suggested")


def profile_detail_url(profile_id: int) -> str:
    return reverse("networking:profiles-detail", args=[profile_id])


def follow_url(profile_id: int) -> str:
    return reverse("networking:profiles-follow", args=[profile_id])


def unfollow_url(profile_id: int) -> str:
    return reverse("networking:profiles-unfollow", args=[profile_id])


def block_url(profile_id: int) -> str:
    return reverse("networking:profiles-block", args=[profile_id])


def approve_url(request_id: int) -> str:
    return reverse("networking:follow-requests-approve", args=[request_id])


def reject_url(request_id: int) -> str:
    return reverse("networking:follow-requests-reject", args=[request_id])


def sample_user(**params):
    defaults = {"email": "test@example.com", "password": "testpassword123"}
    defaults.update(params)
    return get_user_model().objects.create_user(**defaults)


def sample_profile(user=None, **params):
    if user is None:
        user = sample_user()
    defaults = {
        "user": user,
        "username": user.email.split("@")[0],
        "is_public": True,
    }
    defaults.update(params)
    return Profile.objects.create(**defaults)


class UnauthenticatedNetworkingApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_profiles_list_unauthorized(self):
        res = self.client.get(PROFILES_LIST_URL)
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_follow_unauthorized(self):
        target = sample_profile(user=sample_user(email="target@test.com"))
        res = self.client.post(follow_url(target.id))
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(Follow.objects.exists())


class NetworkingTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.user = sample_user(email="me@test.com")
        self.profile = sample_profile(user=self.user)
        self.client.force_authenticate(user=self.user)

    def assertCounters(self, profile, followers, following):
        profile.refresh_from_db()
        self.assertEqual(profile.followers_count, followers)
        self.assertEqual(profile.following_count, following)


class PublicFollowApiTests(NetworkingTestCase):
    def setUp(self):
        super().setUp()
        self.target = sample_profile(user=sample_user(email="public@test.com"))

    def test_follow_public_profile_creates_edge(self):
        res = self.client.post(follow_url(self.target.id))

        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["status"], services.FOLLOWING)
        self.assertTrue(
            Follow.objects.filter(follower=self.profile, following=self.target).exists()
        )
        self.assertFalse(FollowRequest.objects.exists())
        self.assertCounters(self.profile, followers=0, following=1)
        self.assertCounters(self.target, followers=1, following=0)

    def test_follow_notifies_target(self):
        self.client.post(follow_url(self.target.id))

        notification = Notification.objects.get(recipient=self.target)
        self.assertEqual(notification.type, Notification.NotificationType.FOLLOW)
        self.assertEqual(notification.actor, self.profile)
        self.assertFalse(notification.read)

    def test_follow_twice_is_idempotent(self):
        self.client.post(follow_url(self.target.id))
        res = self.client.post(follow_url(self.target.id))

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertTrue(res.data["already_following"])
        self.assertEqual(Follow.objects.count(), 1)
        self.assertCounters(self.target, followers=1, following=0)

    def test_follow_self_rejected(self):
        res = self.client.post(follow_url(self.profile.id))

        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Follow.objects.exists())
        self.assertCounters(self.profile, followers=0, following=0)

    def test_follow_missing_profile(self):
        res = self.client.post(follow_url(999999))
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_follow_deleted_profile(self):
        self.target.is_deleted = True
        self.target.save()

        res = self.client.post(follow_url(self.target.id))
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_unfollow_decrements_counters(self):
        self.client.post(follow_url(self.target.id))
        res = self.client.post(unfollow_url(self.target.id))

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["detail"], "unfollowed")
        self.assertFalse(Follow.objects.exists())
        self.assertCounters(self.profile, followers=0, following=0)
        self.assertCounters(self.target, followers=0, following=0)

    def test_unfollow_without_edge_keeps_counters_at_zero(self):
        res = self.client.post(unfollow_url(self.target.id))

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["detail"], "not_following")
        self.assertCounters(self.target, followers=0, following=0)

    def test_counter_never_goes_negative(self):
        Follow.objects.create(follower=self.profile, following=self.target)
        Profile.objects.filter(pk=self.target.pk).update(followers_count=0)

        Follow.objects.filter(follower=self.profile, following=self.target).delete()

        self.assertCounters(self.target, followers=0, following=0)

    def test_explicit_approval_on_public_profile(self):
        self.target.require_follow_approval = True
        self.target.save()

        res = self.client.post(follow_url(self.target.id))

        self.assertEqual(res.status_code, status.HTTP_202_ACCEPTED)
        self.assertFalse(Follow.objects.exists())


class FollowRequestApiTests(NetworkingTestCase):
    def setUp(self):
        super().setUp()
        self.private_user = sample_user(email="private@test.com")
        self.private = sample_profile(user=self.private_user, is_public=False)
        self.private_client = APIClient()
        self.private_client.force_authenticate(user=self.private_user)

    def _request_follow(self):
        res = self.client.post(follow_url(self.private.id))
        self.assertEqual(res.status_code, status.HTTP_202_ACCEPTED)
        return res.data["request_id"]

    def test_follow_private_profile_files_request(self):
        request_id = self._request_follow()

        follow_request = FollowRequest.objects.get(pk=request_id)
        self.assertEqual(follow_request.requester, self.profile)
        self.assertEqual(follow_request.status, FollowRequest.RequestStatus.PENDING)
        self.assertFalse(Follow.objects.exists())
        self.assertCounters(self.private, followers=0, following=0)

    def test_follow_request_notification_carries_request_id(self):
        request_id = self._request_follow()

        notification = Notification.objects.get(recipient=self.private)
        self.assertEqual(notification.type, Notification.NotificationType.FOLLOW_REQUEST)
        self.assertEqual(notification.entity_type, Notification.EntityType.FOLLOW_REQUEST)
        self.assertEqual(notification.entity_id, request_id)

    def test_repeat_request_returns_same_pending(self):
        first_id = self._request_follow()
        second_id = self._request_follow()

        self.assertEqual(first_id, second_id)
        self.assertEqual(FollowRequest.objects.count(), 1)
        self.assertEqual(Notification.objects.filter(recipient=self.private).count(), 1)

    def test_failed_approval_rolls_back_everything(self):
        request_id = self._request_follow()

        with mock.patch(
            "networking.services.notifications.notify",
            side_effect=RuntimeError("notification store down"),
        ):
            with self.assertRaises(RuntimeError):
                services.approve_request(self.private, request_id)

        self.assertFalse(Follow.objects.exists())
        self.assertCounters(self.profile, followers=0, following=0)
        self.assertCounters(self.private, followers=0, following=0)
        follow_request = FollowRequest.objects.get(pk=request_id)
        self.assertEqual(follow_request.status, FollowRequest.RequestStatus.PENDING)
        self.assertTrue(
            Notification.objects.filter(
                recipient=self.private,
                type=Notification.NotificationType.FOLLOW_REQUEST,
            ).exists()
        )

    def test_incoming_and_sent_lists(self):
        request_id = self._request_follow()

        res = self.private_client.get(FOLLOW_REQUESTS_URL)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual([r["id"] for r in res.data], [request_id])
        self.assertEqual(res.data[0]["requester_id"], self.profile.id)

        res = self.client.get(SENT_REQUESTS_URL)
        self.assertEqual([r["id"] for r in res.data], [request_id])

    def test_approve_creates_edge_and_cleans_up(self):
        request_id = self._request_follow()

        res = self.private_client.post(approve_url(request_id))

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], FollowRequest.RequestStatus.ACCEPTED)
        self.assertTrue(
            Follow.objects.filter(follower=self.profile, following=self.private).exists()
        )
        self.assertFalse(FollowRequest.objects.filter(pk=request_id).exists())
        self.assertCounters(self.private, followers=1, following=0)
        self.assertCounters(self.profile, followers=0, following=1)

        self.assertFalse(
            Notification.objects.filter(
                recipient=self.private,
                type=Notification.NotificationType.FOLLOW_REQUEST,
            ).exists()
        )
        accepted = Notification.objects.get(recipient=self.profile)
        self.assertEqual(accepted.type, Notification.NotificationType.FOLLOW_ACCEPTED)
        self.assertEqual(accepted.actor, self.private)

    def test_approve_twice_does_not_double_count(self):
        request_id = self._request_follow()

        self.private_client.post(approve_url(request_id))
        res = self.private_client.post(approve_url(request_id))

        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(Follow.objects.count(), 1)
        self.assertCounters(self.private, followers=1, following=0)
        self.assertCounters(self.profile, followers=0, following=1)

    def test_approve_with_existing_edge_is_not_double_counted(self):
        request_id = self._request_follow()
        Follow.objects.create(follower=self.profile, following=self.private)

        res = self.private_client.post(approve_url(request_id))

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(Follow.objects.count(), 1)
        self.assertCounters(self.private, followers=1, following=0)
        self.assertFalse(
            Notification.objects.filter(
                type=Notification.NotificationType.FOLLOW_ACCEPTED
            ).exists()
        )

    def test_only_recipient_can_approve(self):
        request_id = self._request_follow()

        res = self.client.post(approve_url(request_id))

        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(FollowRequest.objects.filter(pk=request_id).exists())
        self.assertFalse(Follow.objects.exists())

    def test_reject_then_request_again(self):
        request_id = self._request_follow()

        res = self.private_client.post(reject_url(request_id))

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], FollowRequest.RequestStatus.REJECTED)
        self.assertFalse(Follow.objects.exists())
        self.assertFalse(FollowRequest.objects.exists())
        self.assertFalse(Notification.objects.filter(recipient=self.private).exists())
        self.assertCounters(self.private, followers=0, following=0)

        new_id = self._request_follow()
        self.assertNotEqual(new_id, request_id)
        self.assertEqual(FollowRequest.objects.count(), 1)

    def test_unfollow_cancels_pending_request(self):
        self._request_follow()

        res = self.client.post(unfollow_url(self.private.id))

        self.assertEqual(res.data["detail"], "request_cancelled")
        self.assertFalse(FollowRequest.objects.exists())
        self.assertFalse(Notification.objects.filter(recipient=self.private).exists())

    def test_private_profile_detail_is_partial(self):
        res = self.client.get(profile_detail_url(self.private.id))

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertNotIn("followers_count", res.data)
        self.assertNotIn("bio", res.data)

    def test_private_profile_detail_after_approval(self):
        request_id = self._request_follow()
        self.private_client.post(approve_url(request_id))

        res = self.client.get(profile_detail_url(self.private.id))

        self.assertEqual(res.data["followers_count"], 1)
        self.assertEqual(res.data["follow_status"], services.FOLLOWING)


class BlockApiTests(NetworkingTestCase):
    def setUp(self):
        super().setUp()
        self.other = sample_profile(user=sample_user(email="other@test.com"))

    def test_block_severs_edges_both_ways(self):
        Follow.objects.create(follower=self.profile, following=self.other)
        Follow.objects.create(follower=self.other, following=self.profile)

        res = self.client.post(block_url(self.other.id))

        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertFalse(Follow.objects.exists())
        self.assertCounters(self.profile, followers=0, following=0)
        self.assertCounters(self.other, followers=0, following=0)

    def test_blocked_cannot_follow(self):
        Block.objects.create(blocker=self.other, blocked=self.profile)

        res = self.client.post(follow_url(self.other.id))

        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Follow.objects.exists())

    def test_blocked_profiles_hidden_from_list(self):
        self.client.post(block_url(self.other.id))

        res = self.client.get(PROFILES_LIST_URL)

        self.assertEqual(res.data["results"], [])

    def test_unblock(self):
        self.client.post(block_url(self.other.id))
        res = self.client.delete(block_url(self.other.id))

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertFalse(Block.objects.exists())


class ProfileListApiTests(NetworkingTestCase):
    def test_list_excludes_me_and_hidden(self):
        visible = sample_profile(user=sample_user(email="visible@test.com"))
        sample_profile(
            user=sample_user(email="hidden@test.com"), appear_in_discover=False
        )
        sample_profile(user=sample_user(email="gone@test.com"), is_deleted=True)

        res = self.client.get(PROFILES_LIST_URL)

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual([p["id"] for p in res.data["results"]], [visible.id])

    def test_list_reports_follow_status(self):
        followed = sample_profile(user=sample_user(email="followed@test.com"))
        requested = sample_profile(
            user=sample_user(email="requested@test.com"), is_public=False
        )
        self.client.post(follow_url(followed.id))
        self.client.post(follow_url(requested.id))

        res = self.client.get(PROFILES_LIST_URL)

        statuses = {p["id"]: p["follow_status"] for p in res.data["results"]}
        self.assertEqual(statuses[followed.id], services.FOLLOWING)
        self.assertEqual(statuses[requested.id], services.REQUESTED)

    def test_my_followers_and_following(self):
        fan = sample_profile(user=sample_user(email="fan@test.com"))
        idol = sample_profile(user=sample_user(email="idol@test.com"))
        Follow.objects.create(follower=fan, following=self.profile)
        Follow.objects.create(follower=self.profile, following=idol)
        Follow.objects.create(follower=self.profile, following=fan)

        res = self.client.get(MY_FOLLOWERS_URL)
        self.assertEqual([p["id"] for p in res.data["results"]], [fan.id])
        self.assertTrue(res.data["results"][0]["is_following_back"])

        res = self.client.get(MY_FOLLOWING_URL)
        self.assertEqual(
            sorted(p["id"] for p in res.data["results"]), sorted([fan.id, idol.id])
        )


class SuggestedProfilesApiTests(NetworkingTestCase):
    def _profile(self, email, **params):
        return sample_profile(user=sample_user(email=email), **params)

    def test_suggestions_exclude_followed_blocked_and_opted_out(self):
        popular = self._profile("popular@test.com")
        recent = self._profile("recent@test.com")
        stale = self._profile("stale@test.com")
        followed = self._profile("followed@test.com")
        opted_out = self._profile("quiet@test.com", allow_suggestions=False)
        blocker = self._profile("blocker@test.com")
        blocked = self._profile("blocked@test.com")
        self._profile("gone@test.com", is_deleted=True)

        Profile.objects.filter(pk=popular.pk).update(followers_count=5)
        Presence.objects.create(profile=recent, last_active=timezone.now())
        Presence.objects.create(
            profile=stale, last_active=timezone.now() - timedelta(hours=1)
        )
        Follow.objects.create(follower=self.profile, following=followed)
        Block.objects.create(blocker=blocker, blocked=self.profile)
        Block.objects.create(blocker=self.profile, blocked=blocked)

        res = self.client.get(SUGGESTED_URL)

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [p["id"] for p in res.data], [popular.id, recent.id, stale.id]
        )
        self.assertNotIn(opted_out.id, [p["id"] for p in res.data])

    def test_suggestions_capped(self):
        for index in range(services.SUGGESTION_LIMIT + 2):
            self._profile(f"user{index}@test.com")

        res = self.client.get(SUGGESTED_URL)

        self.assertEqual(len(res.data), services.SUGGESTION_LIMIT)


class StorageErrorApiTests(NetworkingTestCase):
    def setUp(self):
        super().setUp()
        self.target = sample_profile(user=sample_user(email="public@test.com"))

    def test_operational_error_is_503_with_retry_after(self):
        with mock.patch(
            "networking.services.request_or_create_follow",
            side_effect=OperationalError("statement timeout"),
        ):
            res = self.client.post(follow_url(self.target.id))

        self.assertEqual(res.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertIn("Retry-After", res)

    def test_escaped_integrity_error_is_409(self):
        with mock.patch(
            "networking.services.request_or_create_follow",
            side_effect=IntegrityError("duplicate key"),
        ):
            res = self.client.post(follow_url(self.target.id))

        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)


class ReconcileCountersTests(TestCase):
    def test_reconcile_fixes_drifted_counters(self):
        first = sample_profile(user=sample_user(email="first@test.com"))
        second = sample_profile(user=sample_user(email="second@test.com"))
        Follow.objects.create(follower=first, following=second)
        Profile.objects.filter(pk=second.pk).update(followers_count=7)
        Profile.objects.filter(pk=first.pk).update(following_count=0)

        fixed = reconcile_counters(batch_size=1)

        self.assertEqual(fixed, 2)
        second.refresh_from_db()
        first.refresh_from_db()
        self.assertEqual(second.followers_count, 1)
        self.assertEqual(first.following_count, 1)

    def test_reconcile_leaves_correct_counters(self):
        first = sample_profile(user=sample_user(email="first@test.com"))
        second = sample_profile(user=sample_user(email="second@test.com"))
        Follow.objects.create(follower=first, following=second)

        self.assertEqual(reconcile_counters(), 0)

    def test_management_command(self):
        out = StringIO()
        call_command("reconcile_follow_counters", stdout=out)
        self.assertIn("Corrected 0 profiles", out.getvalue())


class WaitForDbCommandTests(TestCase):
    @mock.patch("networking.management.commands.wait_for_db.time.sleep")
    def test_wait_for_db_retries(self, patched_sleep):
        with mock.patch(
            "django.db.backends.base.base.BaseDatabaseWrapper.ensure_connection",
            side_effect=[OperationalError, OperationalError, None],
        ) as patched_connect:
            call_command("wait_for_db", stdout=StringIO())

        self.assertEqual(patched_connect.call_count, 3)
        self.assertEqual(patched_sleep.call_count, 2)

    @mock.patch("networking.management.commands.wait_for_db.time.sleep")
    @mock.patch("networking.management.commands.wait_for_db.time.monotonic")
    def test_wait_for_db_gives_up(self, patched_clock, patched_sleep):
        patched_clock.side_effect = itertools.count(0, 6)
        with mock.patch(
            "django.db.backends.base.base.BaseDatabaseWrapper.ensure_connection",
            side_effect=OperationalError,
        ):
            with self.assertRaises(CommandError):
                call_command("wait_for_db", "--timeout", "10", stdout=StringIO())
