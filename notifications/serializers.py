from rest_framework import serializers

from notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """Notification row enriched with the actor's card and a context thumbnail."""

    actor = serializers.SerializerMethodField()
    context_media_url = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            "id",
            "type",
            "actor",
            "entity_type",
            "entity_id",
            "text",
            "read",
            "context_media_url",
            "created_at",
        ]

    def get_actor(self, obj) -> dict:
        card = self.context.get("cards", {}).get(obj.actor_id)
        if card is None:
            return {
                "id": obj.actor_id,
                "username": None,
                "display_name": "Unknown",
                "avatar_url": None,
            }
        return card

    def get_context_media_url(self, obj) -> str | None:
        return self.context.get("media", {}).get(obj.pk)


class NotificationListParamsSerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=200, required=False)
    unread = serializers.BooleanField(required=False, default=False)


class MarkReadSerializer(serializers.Serializer):
    ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), allow_empty=False
    )


class UpdatedCountSerializer(serializers.Serializer):
    updated = serializers.IntegerField(read_only=True)


class UnreadCountSerializer(serializers.Serializer):
    unread = serializers.IntegerField(read_only=True)
