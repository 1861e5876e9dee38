from rest_framework import serializers
from rest_framework.reverse import reverse

from networking.models import FollowRequest
from user.models import Profile


class ProfileListSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    follow_status = serializers.SerializerMethodField()
    is_online = serializers.SerializerMethodField()
    profile_detail = serializers.SerializerMethodField()

    class Meta:
        model = Profile
        fields = (
            "id",
            "username",
            "full_name",
            "profile_picture",
            "is_public",
            "followers_count",
            "following_count",
            "follow_status",
            "is_online",
            "profile_detail",
        )

    def get_follow_status(self, obj):
        return getattr(obj, "follow_status", None)

    def get_is_online(self, obj) -> bool:
        return bool(getattr(obj, "is_online", False))

    def get_profile_detail(self, obj):
        request = self.context.get("request")
        return reverse(
            "networking:profiles-detail", kwargs={"pk": obj.pk}, request=request
        )


class NetworkProfileSerializer(ProfileListSerializer):
    """Followers/following entry with edge metadata."""

    followed_at = serializers.DateTimeField(read_only=True)
    is_following_back = serializers.SerializerMethodField()

    class Meta(ProfileListSerializer.Meta):
        fields = ProfileListSerializer.Meta.fields + (
            "bio",
            "followed_at",
            "is_following_back",
        )

    def get_is_following_back(self, obj) -> bool:
        return bool(getattr(obj, "is_following_back", False))


class PrivateProfileSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    follow_status = serializers.SerializerMethodField()

    class Meta:
        model = Profile
        fields = [
            "id",
            "username",
            "full_name",
            "profile_picture",
            "is_public",
            "follow_status",
        ]

    def get_follow_status(self, obj):
        return getattr(obj, "follow_status", None)


class ProfileDetailSerializer(serializers.ModelSerializer):

    full_name = serializers.CharField(read_only=True)
    follow_status = serializers.SerializerMethodField()
    videos_count = serializers.SerializerMethodField()

    class Meta:
        model = Profile
        fields = (
            "id",
            "username",
            "full_name",
            "bio",
            "profile_picture",
            "is_public",
            "followers_count",
            "following_count",
            "videos_count",
            "created_at",
            "follow_status",
        )

    def get_follow_status(self, obj):
        return getattr(obj, "follow_status", None)

    def get_videos_count(self, obj) -> int:
        return obj.videos.count()


class FollowRequestSerializer(serializers.ModelSerializer):
    """Incoming follow request with approve/reject urls"""

    requester_id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(source="requester.username", read_only=True)
    full_name = serializers.CharField(source="requester.full_name", read_only=True)
    profile_picture = serializers.ImageField(
        source="requester.profile_picture", read_only=True
    )
    requested_at = serializers.DateTimeField(source="created_at", read_only=True)
    approve_url = serializers.SerializerMethodField()
    reject_url = serializers.SerializerMethodField()

    class Meta:
        model = FollowRequest
        fields = [
            "id",
            "requester_id",
            "username",
            "full_name",
            "profile_picture",
            "requested_at",
            "status",
            "approve_url",
            "reject_url",
        ]

    def get_approve_url(self, obj):
        req = self.context.get("request")
        return reverse(
            "networking:follow-requests-approve",
            kwargs={"pk": obj.pk},
            request=req,
        )

    def get_reject_url(self, obj):
        req = self.context.get("request")
        return reverse(
            "networking:follow-requests-reject",
            kwargs={"pk": obj.pk},
            request=req,
        )


class SentFollowRequestSerializer(serializers.ModelSerializer):
    recipient_id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(source="recipient.username", read_only=True)
    requested_at = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = FollowRequest
        fields = ["id", "recipient_id", "username", "requested_at", "status"]


class FollowRequestResolutionSerializer(serializers.ModelSerializer):
    """Result of approve/reject; the request row is already gone."""

    requester_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = FollowRequest
        fields = ["id", "requester_id", "status"]


class FollowResultSerializer(serializers.Serializer):
    status = serializers.CharField(read_only=True)
    already_following = serializers.BooleanField(read_only=True, required=False)
    request_id = serializers.IntegerField(read_only=True, required=False)


class EmptySerializer(serializers.Serializer):
    pass
