from rest_framework import serializers

from content.models import Video
from radar.models import Presence


class ActivitySerializer(serializers.Serializer):
    activity = serializers.ChoiceField(
        choices=Presence.Activity.choices, default=Presence.Activity.IDLE
    )
    video_id = serializers.PrimaryKeyRelatedField(
        source="video",
        queryset=Video.objects.all(),
        required=False,
        allow_null=True,
    )


class LivePresenceSerializer(serializers.ModelSerializer):
    profile_id = serializers.IntegerField(read_only=True)
    username = serializers.SerializerMethodField()
    display_name = serializers.SerializerMethodField()
    avatar_url = serializers.SerializerMethodField()
    video_id = serializers.IntegerField(read_only=True)
    is_watching = serializers.SerializerMethodField()

    class Meta:
        model = Presence
        fields = [
            "profile_id",
            "username",
            "display_name",
            "avatar_url",
            "activity",
            "video_id",
            "last_active",
            "is_watching",
        ]

    def _card(self, obj) -> dict:
        return self.context.get("cards", {}).get(obj.profile_id, {})

    def get_username(self, obj):
        return self._card(obj).get("username")

    def get_display_name(self, obj):
        return self._card(obj).get("display_name", "Unknown")

    def get_avatar_url(self, obj):
        return self._card(obj).get("avatar_url")

    def get_is_watching(self, obj) -> bool:
        return obj.activity == Presence.Activity.WATCHING
