from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.reverse import reverse
from rest_framework.test import APIClient

from content.models import Comment, Video
from content import services as content_services
from notifications import services
from notifications.models import Notification
from notifications.tasks import purge_read_notifications
from user.models import Profile


NOTIFICATIONS_URL = reverse("notifications:notifications-list")
MARK_READ_URL = reverse("notifications:notifications-read")
READ_ALL_URL = reverse("notifications:notifications-read-all")
UNREAD_COUNT_URL = reverse("notifications:notifications-unread-count")


def notification_detail_url(notification_id: int) -> str:
    return reverse("notifications:notifications-detail", args=[notification_id])


def sample_profile(email, **params):
    user = get_user_model().objects.create_user(
        email=email, password="testpassword123"
    )
    defaults = {"user": user, "username": email.split("@")[0]}
    defaults.update(params)
    return Profile.objects.create(**defaults)


def sample_video(owner, **params):
    defaults = {
        "owner": owner,
        "title": "Sunset",
        "video_url": "https://cdn.example.com/v/1.mp4",
        "thumbnail_url": "https://cdn.example.com/t/1.jpg",
    }
    defaults.update(params)
    return Video.objects.create(**defaults)


class NotifyServiceTests(TestCase):
    def setUp(self):
        self.owner = sample_profile("owner@test.com")
        self.alice = sample_profile("alice@test.com")
        self.bob = sample_profile("bob@test.com")
        self.video = sample_video(self.owner)

    def _like(self, actor):
        return services.notify(
            recipient=self.owner,
            actor=actor,
            type=Notification.NotificationType.LIKE,
            entity_type=Notification.EntityType.REEL,
            entity_id=self.video.pk,
        )

    def test_likes_coalesce_while_unread(self):
        first = self._like(self.alice)
        second = self._like(self.bob)

        self.assertEqual(first.pk, second.pk)
        notifications = Notification.objects.filter(recipient=self.owner)
        self.assertEqual(notifications.count(), 1)
        self.assertEqual(notifications.get().actor, self.bob)

    def test_coalesced_like_moves_to_top(self):
        first = self._like(self.alice)
        Notification.objects.filter(pk=first.pk).update(
            created_at=timezone.now() - timedelta(hours=1)
        )
        services.notify(
            recipient=self.owner,
            actor=self.alice,
            type=Notification.NotificationType.FOLLOW,
        )

        self._like(self.bob)

        newest = services.list_for(self.owner)[0]
        self.assertEqual(newest.pk, first.pk)

    def test_read_like_is_not_reused(self):
        first = self._like(self.alice)
        services.mark_read(self.owner, [first.pk])

        second = self._like(self.bob)

        self.assertNotEqual(first.pk, second.pk)
        self.assertEqual(Notification.objects.filter(recipient=self.owner).count(), 2)

    def test_likes_on_different_videos_do_not_coalesce(self):
        other_video = sample_video(self.owner, title="Sunrise")
        self._like(self.alice)
        services.notify(
            recipient=self.owner,
            actor=self.alice,
            type=Notification.NotificationType.LIKE,
            entity_type=Notification.EntityType.REEL,
            entity_id=other_video.pk,
        )

        self.assertEqual(Notification.objects.filter(recipient=self.owner).count(), 2)

    def test_comments_are_not_coalesced(self):
        for actor in (self.alice, self.bob):
            services.notify(
                recipient=self.owner,
                actor=actor,
                type=Notification.NotificationType.COMMENT,
                entity_type=Notification.EntityType.REEL,
                entity_id=self.video.pk,
                text="nice",
            )

        self.assertEqual(Notification.objects.filter(recipient=self.owner).count(), 2)

    def test_self_notification_skipped(self):
        result = services.notify(
            recipient=self.owner,
            actor=self.owner,
            type=Notification.NotificationType.LIKE,
            entity_type=Notification.EntityType.REEL,
            entity_id=self.video.pk,
        )

        self.assertIsNone(result)
        self.assertFalse(Notification.objects.exists())

    def test_deleted_recipient_skipped(self):
        self.owner.is_deleted = True
        self.owner.save()

        self.assertIsNone(self._like(self.alice))

    def test_text_is_truncated(self):
        notification = services.notify(
            recipient=self.owner,
            actor=self.alice,
            type=Notification.NotificationType.COMMENT,
            text="x" * 500,
        )

        self.assertEqual(len(notification.text), services.TEXT_MAX_LENGTH)

    def test_mark_read_ignores_foreign_ids(self):
        mine = self._like(self.alice)
        foreign = services.notify(
            recipient=self.alice,
            actor=self.bob,
            type=Notification.NotificationType.FOLLOW,
        )

        updated = services.mark_read(self.owner, [mine.pk, foreign.pk])

        self.assertEqual(updated, 1)
        foreign.refresh_from_db()
        self.assertFalse(foreign.read)

    def test_dismiss_foreign_notification_not_found(self):
        foreign = services.notify(
            recipient=self.alice,
            actor=self.bob,
            type=Notification.NotificationType.FOLLOW,
        )

        with self.assertRaises(NotFound):
            services.dismiss(self.owner, foreign.pk)
        self.assertTrue(Notification.objects.filter(pk=foreign.pk).exists())

    def test_list_limit_and_unread_filter(self):
        for index in range(5):
            services.notify(
                recipient=self.owner,
                actor=self.alice,
                type=Notification.NotificationType.COMMENT,
                text=f"comment {index}",
            )
        oldest = Notification.objects.order_by("created_at", "id").first()
        services.mark_read(self.owner, [oldest.pk])

        self.assertEqual(len(services.list_for(self.owner, limit=3)), 3)
        unread = services.list_for(self.owner, unread_only=True)
        self.assertEqual(len(unread), 4)
        self.assertNotIn(oldest.pk, [n.pk for n in unread])

    def test_snippet(self):
        self.assertEqual(services.snippet("short", 20), "short")
        self.assertEqual(services.snippet("a" * 30, 20), "a" * 20 + "...")


class NotificationApiTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.owner = sample_profile("owner@test.com", display_name="Owner")
        self.alice = sample_profile("alice@test.com", display_name="Alice")
        self.video = sample_video(self.owner)
        self.client.force_authenticate(user=self.owner.user)

    def test_list_requires_auth(self):
        res = APIClient().get(NOTIFICATIONS_URL)
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_enriches_actor_and_media(self):
        content_services.like_video(self.alice, self.video)

        res = self.client.get(NOTIFICATIONS_URL)

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(len(res.data), 1)
        item = res.data[0]
        self.assertEqual(item["type"], Notification.NotificationType.LIKE)
        self.assertEqual(item["actor"]["id"], self.alice.id)
        self.assertEqual(item["actor"]["display_name"], "Alice")
        self.assertEqual(item["context_media_url"], self.video.thumbnail_url)

    def test_comment_like_uses_parent_video_thumbnail(self):
        comment = Comment.objects.create(
            video=self.video, author=self.owner, text="first!"
        )
        content_services.toggle_comment_like(self.alice, comment)

        res = self.client.get(NOTIFICATIONS_URL)

        item = res.data[0]
        self.assertEqual(item["entity_type"], Notification.EntityType.COMMENT)
        self.assertEqual(item["context_media_url"], self.video.thumbnail_url)
        self.assertIn("first!", item["text"])

    def test_missing_entity_has_no_media(self):
        content_services.like_video(self.alice, self.video)
        self.video.delete()

        res = self.client.get(NOTIFICATIONS_URL)

        self.assertIsNone(res.data[0]["context_media_url"])

    @override_settings(NOTIFICATION_LIST_LIMIT=2)
    def test_default_limit(self):
        for index in range(3):
            services.notify(
                recipient=self.owner,
                actor=self.alice,
                type=Notification.NotificationType.COMMENT,
                text=str(index),
            )

        res = self.client.get(NOTIFICATIONS_URL)
        self.assertEqual(len(res.data), 2)

        res = self.client.get(NOTIFICATIONS_URL, {"limit": 3})
        self.assertEqual(len(res.data), 3)

    def test_mark_read_and_unread_count(self):
        first = services.notify(
            recipient=self.owner,
            actor=self.alice,
            type=Notification.NotificationType.FOLLOW,
        )
        services.notify(
            recipient=self.owner,
            actor=self.alice,
            type=Notification.NotificationType.COMMENT,
            text="hi",
        )

        res = self.client.patch(MARK_READ_URL, {"ids": [first.pk]}, format="json")
        self.assertEqual(res.data["updated"], 1)

        res = self.client.get(UNREAD_COUNT_URL)
        self.assertEqual(res.data["unread"], 1)

        res = self.client.post(READ_ALL_URL)
        self.assertEqual(res.data["updated"], 1)
        self.assertEqual(self.client.get(UNREAD_COUNT_URL).data["unread"], 0)

    def test_mark_read_requires_ids(self):
        res = self.client.patch(MARK_READ_URL, {"ids": []}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dismiss(self):
        notification = services.notify(
            recipient=self.owner,
            actor=self.alice,
            type=Notification.NotificationType.FOLLOW,
        )

        res = self.client.delete(notification_detail_url(notification.pk))
        self.assertEqual(res.status_code, status.HTTP_204_NO_CONTENT)

        res = self.client.delete(notification_detail_url(notification.pk))
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_actor_card_cached(self):
        services.notify(
            recipient=self.owner,
            actor=self.alice,
            type=Notification.NotificationType.FOLLOW,
        )
        self.client.get(NOTIFICATIONS_URL)

        # a raw update bypasses the save signal, so the cached card survives
        Profile.objects.filter(pk=self.alice.pk).update(display_name="Changed")
        res = self.client.get(NOTIFICATIONS_URL)
        self.assertEqual(res.data[0]["actor"]["display_name"], "Alice")

        self.alice.display_name = "Alicia"
        self.alice.save()
        res = self.client.get(NOTIFICATIONS_URL)
        self.assertEqual(res.data[0]["actor"]["display_name"], "Alicia")


class PurgeReadNotificationsTaskTests(TestCase):
    def test_purges_only_old_read_rows(self):
        owner = sample_profile("owner@test.com")
        actor = sample_profile("actor@test.com")
        old = timezone.now() - timedelta(days=60)

        old_read = Notification.objects.create(
            recipient=owner, actor=actor, type="follow", read=True, created_at=old
        )
        old_unread = Notification.objects.create(
            recipient=owner, actor=actor, type="follow", created_at=old
        )
        fresh_read = Notification.objects.create(
            recipient=owner, actor=actor, type="follow", read=True
        )

        deleted = purge_read_notifications.apply(kwargs={"batch_size": 1}).get()

        self.assertEqual(deleted, 1)
        remaining = set(Notification.objects.values_list("pk", flat=True))
        self.assertEqual(remaining, {old_unread.pk, fresh_read.pk})
        self.assertNotIn(old_read.pk, remaining)
