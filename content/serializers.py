from datetime import timedelta

from django.utils import timezone
from rest_framework import serializers
from rest_framework.reverse import reverse

from content.models import Bookmark, Comment, Share, Video
from user.models import Profile


class VideoSerializer(serializers.ModelSerializer):
    """Video serializer (Retrieve, Create, Delete)"""

    owner_id = serializers.IntegerField(read_only=True)
    owner_username = serializers.CharField(source="owner.username", read_only=True)
    like_count = serializers.IntegerField(read_only=True, default=0)
    comment_count = serializers.IntegerField(read_only=True, default=0)
    share_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Video
        fields = [
            "id",
            "owner_id",
            "owner_username",
            "title",
            "description",
            "video_url",
            "thumbnail_url",
            "like_count",
            "comment_count",
            "share_count",
            "created_at",
            "updated_at",
        ]


class VideoListSerializer(serializers.ModelSerializer):
    """Feed entry"""

    owner_id = serializers.IntegerField(read_only=True)
    owner_username = serializers.CharField(source="owner.username", read_only=True)
    like_count = serializers.IntegerField(read_only=True)
    comment_count = serializers.IntegerField(read_only=True)
    liked_by_me = serializers.BooleanField(read_only=True)
    bookmarked_by_me = serializers.BooleanField(read_only=True)
    detail = serializers.SerializerMethodField()

    class Meta:
        model = Video
        fields = [
            "id",
            "owner_id",
            "owner_username",
            "title",
            "video_url",
            "thumbnail_url",
            "like_count",
            "comment_count",
            "liked_by_me",
            "bookmarked_by_me",
            "created_at",
            "detail",
        ]

    def get_detail(self, obj):
        request = self.context.get("request")
        return reverse(
            "content:videos-detail",
            kwargs={"pk": obj.pk},
            request=request,
        )


class LikeStatusSerializer(serializers.Serializer):
    """Serializer for like status response"""

    liked = serializers.BooleanField(read_only=True)
    like_count = serializers.IntegerField(read_only=True)
    already_liked = serializers.BooleanField(read_only=True, required=False)


class BookmarkStatusSerializer(serializers.Serializer):
    bookmarked = serializers.BooleanField(read_only=True)
    revisited = serializers.BooleanField(read_only=True, required=False)
    revisit_count = serializers.IntegerField(read_only=True, required=False)


class BookmarkSerializer(serializers.ModelSerializer):
    video = VideoSerializer(read_only=True)

    class Meta:
        model = Bookmark
        fields = ["id", "video", "revisit_count", "last_visited_at", "created_at"]


class BookmarkSortSerializer(serializers.Serializer):
    sort = serializers.ChoiceField(choices=["memory", "recent"], default="memory")


class ShareSerializer(serializers.Serializer):
    share_type = serializers.ChoiceField(choices=Share.ShareType.choices)
    recipient_id = serializers.PrimaryKeyRelatedField(
        source="recipient",
        queryset=Profile.active.all(),
        required=False,
        allow_null=True,
    )
    external_platform = serializers.CharField(
        max_length=50, required=False, allow_blank=True
    )


class ShareCountSerializer(serializers.Serializer):
    share_count = serializers.IntegerField(read_only=True)


class CommentSerializer(serializers.ModelSerializer):
    """Serializer for Comment create/retrieve"""

    author_id = serializers.IntegerField(read_only=True)
    author_username = serializers.CharField(source="author.username", read_only=True)
    video_id = serializers.PrimaryKeyRelatedField(
        source="video", queryset=Video.objects.filter(owner__is_deleted=False)
    )
    parent_id = serializers.PrimaryKeyRelatedField(
        source="parent",
        queryset=Comment.objects.filter(is_deleted=False),
        allow_null=True,
        required=False,
    )
    like_count = serializers.SerializerMethodField()
    is_liked = serializers.SerializerMethodField()

    class Meta:
        model = Comment
        fields = [
            "id",
            "video_id",
            "author_id",
            "author_username",
            "text",
            "parent_id",
            "like_count",
            "is_liked",
            "is_deleted",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "is_deleted",
            "created_at",
            "updated_at",
        ]

    def get_like_count(self, obj) -> int:
        annotated = getattr(obj, "like_count", None)
        if annotated is not None:
            return annotated
        return obj.likes.count()

    def get_is_liked(self, obj) -> bool:
        annotated = getattr(obj, "is_liked", None)
        if annotated is not None:
            return annotated
        request = self.context.get("request")
        profile = getattr(getattr(request, "user", None), "profile", None)
        if profile is None:
            return False
        return obj.likes.filter(pk=profile.pk).exists()

    def validate_text(self, value):
        """Validate empty comment text"""
        if not value.strip():
            raise serializers.ValidationError("Comment text cannot be empty.")
        return value

    def validate(self, data):
        """Parent must belong to the same video; throttle rapid-fire comments"""
        parent = data.get("parent")
        video = data.get("video")
        if parent is not None and video is not None and parent.video_id != video.pk:
            raise serializers.ValidationError(
                {"parent_id": "Parent comment must belong to the same video."}
            )

        author = self.context["request"].user.profile
        cutoff_time = timezone.now() - timedelta(seconds=2)
        recent_duplicate = Comment.objects.filter(
            author=author,
            video=video,
            text=data.get("text", "").strip(),
            created_at__gte=cutoff_time,
        ).exists()
        if recent_duplicate:
            raise serializers.ValidationError("Duplicate comment.")
        return data


class CommentLikeSerializer(serializers.Serializer):
    is_liked = serializers.BooleanField(read_only=True)
    like_count = serializers.IntegerField(read_only=True)
