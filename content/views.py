from django.db.models import Count, Exists, OuterRef, Q
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from content import services
from content.models import Bookmark, Comment, Like, Video
from content.permissions import CanAccessComment, CanViewVideo
from content.serializers import (
    BookmarkSerializer,
    BookmarkSortSerializer,
    BookmarkStatusSerializer,
    CommentLikeSerializer,
    CommentSerializer,
    LikeStatusSerializer,
    ShareCountSerializer,
    ShareSerializer,
    VideoListSerializer,
    VideoSerializer,
)
from networking.models import Block, Follow
from user.permissions import HasActiveProfile


class ContentPagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = "page_size"
    max_page_size = 100


class VideoViewSet(
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """
    API for reels.
    - GET    /videos/                 -> Feed: own, public and followed owners
    - POST   /videos/                 -> Publish a video reference
    - GET    /videos/{id}/            -> Retrieve a video
    - DELETE /videos/{id}/            -> Delete own video
    - GET|PUT|DELETE /videos/{id}/like/     -> Like status / like / unlike
    - GET|PUT|DELETE /videos/{id}/bookmark/ -> Bookmark status / bookmark / remove
    - GET|POST /videos/{id}/share/    -> Share count / record a share
    - GET    /videos/bookmarks/?sort= -> My bookmarks (memory or recent)
    - GET    /videos/liked_by_me/     -> Videos I liked
    """

    queryset = Video.objects.select_related("owner")
    serializer_class = VideoSerializer
    pagination_class = ContentPagination
    permission_classes = [IsAuthenticated, HasActiveProfile, CanViewVideo]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ["owner"]
    search_fields = ["title", "description"]
    lookup_value_regex = r"\d+"

    def get_serializer_class(self):
        if self.action in ["list", "liked_by_me"]:
            return VideoListSerializer
        if self.action == "like":
            return LikeStatusSerializer
        if self.action == "bookmark":
            return BookmarkStatusSerializer
        if self.action == "bookmarks":
            return BookmarkSerializer
        if self.action == "share":
            return ShareSerializer
        return VideoSerializer

    def _annotate(self, queryset):
        me = self.request.user.profile
        return queryset.annotate(
            like_count=Count("likes", distinct=True),
            comment_count=Count(
                "comments", filter=Q(comments__is_deleted=False), distinct=True
            ),
            share_count=Count("shares", distinct=True),
            liked_by_me=Exists(Like.objects.filter(video_id=OuterRef("pk"), user=me)),
            bookmarked_by_me=Exists(
                Bookmark.objects.filter(video_id=OuterRef("pk"), user=me)
            ),
        )

    def get_queryset(self):
        """
        Visible videos: owner not deleted, not blocked either way,
        and owner is me, public or followed by me.
        """
        me = self.request.user.profile
        followed = Follow.objects.filter(follower=me).values("following_id")
        blocked = Block.objects.filter(
            Q(blocker=me, blocked_id=OuterRef("owner_id"))
            | Q(blocker_id=OuterRef("owner_id"), blocked=me)
        )
        queryset = (
            super()
            .get_queryset()
            .filter(owner__is_deleted=False)
            .exclude(Exists(blocked))
        )
        if self.action in ["list", "liked_by_me"]:
            queryset = queryset.filter(
                Q(owner=me) | Q(owner__is_public=True) | Q(owner_id__in=followed)
            )
        return self._annotate(queryset).order_by("-created_at")

    def perform_create(self, serializer):
        serializer.save(owner=self.request.user.profile)

    @extend_schema(
        description="Manage video likes",
        methods=["GET", "PUT", "DELETE"],
        request=None,
        responses={200: LikeStatusSerializer, 201: LikeStatusSerializer},
    )
    @action(detail=True, methods=["get", "put", "delete"])
    def like(self, request, pk=None):
        """
        GET - check if user liked the video
        PUT - like the video (repeat is a no-op)
        DELETE - unlike the video
        """
        me = request.user.profile
        video = self.get_object()

        if request.method == "GET":
            liked = Like.objects.filter(user=me, video=video).exists()
            return Response({"liked": liked, "like_count": services.like_count(video)})

        if request.method == "PUT":
            created, count = services.like_video(me, video)
            return Response(
                {"liked": True, "like_count": count, "already_liked": not created},
                status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
            )

        count = services.unlike_video(me, video)
        return Response({"liked": False, "like_count": count})

    @extend_schema(
        methods=["GET", "PUT", "DELETE"],
        request=None,
        responses={200: BookmarkStatusSerializer, 201: BookmarkStatusSerializer},
    )
    @action(detail=True, methods=["get", "put", "delete"])
    def bookmark(self, request, pk=None):
        """
        GET - bookmark status
        PUT - bookmark, or count a revisit when already bookmarked
        DELETE - remove the bookmark
        """
        me = request.user.profile
        video = self.get_object()

        if request.method == "GET":
            bookmark = Bookmark.objects.filter(user=me, video=video).first()
            return Response(
                {
                    "bookmarked": bookmark is not None,
                    "revisit_count": bookmark.revisit_count if bookmark else 0,
                }
            )

        if request.method == "PUT":
            bookmark, created = services.bookmark_video(me, video)
            return Response(
                {
                    "bookmarked": True,
                    "revisited": not created,
                    "revisit_count": bookmark.revisit_count,
                },
                status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
            )

        services.remove_bookmark(me, video)
        return Response({"bookmarked": False})

    @extend_schema(
        methods=["GET"], request=None, responses={200: ShareCountSerializer}
    )
    @extend_schema(
        methods=["POST"], request=ShareSerializer, responses={201: ShareCountSerializer}
    )
    @action(detail=True, methods=["get", "post"])
    def share(self, request, pk=None):
        me = request.user.profile
        video = self.get_object()

        if request.method == "GET":
            return Response({"share_count": services.share_count(video)})

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        count = services.record_share(
            me,
            video,
            share_type=serializer.validated_data["share_type"],
            recipient=serializer.validated_data.get("recipient"),
            external_platform=serializer.validated_data.get("external_platform", ""),
        )
        return Response({"share_count": count}, status=status.HTTP_201_CREATED)

    @extend_schema(
        description="My bookmarks. sort=memory (most revisited) or sort=recent.",
        parameters=[
            OpenApiParameter(
                name="sort", type=str, enum=["memory", "recent"], required=False
            ),
        ],
        responses={200: BookmarkSerializer(many=True)},
    )
    @action(detail=False, methods=["get"])
    def bookmarks(self, request):
        params = BookmarkSortSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        queryset = services.bookmarks_for(
            request.user.profile, params.validated_data["sort"]
        )
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(
            page if page is not None else queryset, many=True
        )
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)

    @action(detail=False, methods=["get"])
    def liked_by_me(self, request):
        """List videos liked by the current user."""
        me = request.user.profile
        queryset = self.get_queryset().filter(likes__user=me).distinct()
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(
            page if page is not None else queryset, many=True
        )
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)

    @extend_schema(
        description="Feed of visible videos: own, public owners and followed owners.",
        parameters=[
            OpenApiParameter(name="owner", description="Filter by owner ID", type=int),
            OpenApiParameter(
                name="search", description="Search title or description", type=str
            ),
            OpenApiParameter(name="page", type=int),
            OpenApiParameter(name="page_size", type=int),
        ],
        responses={200: VideoListSerializer(many=True)},
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)


class CommentViewSet(
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """
    API for comments.
    - GET    /comments/?video=   -> Comments of a video
    - POST   /comments/          -> Comment (honours the owner's comment permission)
    - GET    /comments/{id}/     -> Retrieve a comment
    - DELETE /comments/{id}/     -> Soft delete (author or video owner)
    - POST   /comments/{id}/like/      -> Toggle like
    - GET    /comments/{id}/children/  -> Replies
    """

    queryset = Comment.objects.select_related("author", "video__owner")
    pagination_class = ContentPagination
    serializer_class = CommentSerializer
    permission_classes = [IsAuthenticated, HasActiveProfile, CanAccessComment]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ["video", "parent"]
    ordering_fields = ["created_at"]
    ordering = ["-created_at"]
    lookup_value_regex = r"\d+"

    def get_serializer_class(self):
        if self.action == "like":
            return CommentLikeSerializer
        return CommentSerializer

    def get_queryset(self):
        me = self.request.user.profile
        return (
            super()
            .get_queryset()
            .filter(is_deleted=False, video__owner__is_deleted=False)
            .annotate(
                like_count=Count("likes", distinct=True),
                is_liked=Exists(
                    Comment.likes.through.objects.filter(
                        comment_id=OuterRef("pk"), profile_id=me.pk
                    )
                ),
            )
        )

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        me = request.user.profile
        video = serializer.validated_data["video"]
        if not CanViewVideo().has_object_permission(request, self, video):
            raise PermissionDenied("You do not have access to this video.")

        comment = services.create_comment(
            me,
            video,
            serializer.validated_data["text"],
            parent=serializer.validated_data.get("parent"),
        )
        output = CommentSerializer(comment, context=self.get_serializer_context())
        return Response(output.data, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        services.delete_comment(self.request.user.profile, instance)

    @extend_schema(request=None, responses={200: CommentLikeSerializer})
    @action(detail=True, methods=["post"])
    def like(self, request, pk=None):
        """Like the comment, or take the like back when already liked."""
        comment = self.get_object()
        liked, count = services.toggle_comment_like(request.user.profile, comment)
        return Response({"is_liked": liked, "like_count": count})

    @action(detail=True, methods=["get"], url_path="children")
    def children(self, request, pk=None):
        """Direct replies to a comment, oldest first."""
        parent_comment = self.get_object()
        children = self.get_queryset().filter(parent=parent_comment).order_by(
            "created_at"
        )
        serializer = CommentSerializer(
            children, many=True, context=self.get_serializer_context()
        )
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        parameters=[
            OpenApiParameter(
                name="video", description="Filter by video ID", type=int, required=False
            ),
            OpenApiParameter(
                name="parent",
                description="Filter by parent comment ID",
                type=int,
                required=False,
            ),
        ],
        responses={200: CommentSerializer(many=True)},
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)
