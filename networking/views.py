from django.db.models import (
    Case,
    CharField,
    Exists,
    OuterRef,
    Q,
    Subquery,
    Value,
    When,
)
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiResponse
from rest_framework import decorators, filters, mixins, permissions, status, viewsets
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from networking import services
from networking.models import Block, Follow, FollowRequest
from networking.permissions import CanViewProfileDetail
from networking.serializers import (
    EmptySerializer,
    FollowRequestResolutionSerializer,
    FollowRequestSerializer,
    FollowResultSerializer,
    NetworkProfileSerializer,
    PrivateProfileSerializer,
    ProfileDetailSerializer,
    ProfileListSerializer,
    SentFollowRequestSerializer,
)
from radar.services import online_cutoff
from radar.models import Presence
from reels_api.exceptions import AlreadyFollowing
from user.models import Profile
from user.permissions import HasActiveProfile


class NetworkPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100


class PublicProfileViewSet(viewsets.ReadOnlyModelViewSet):
    """
    API for the follow graph.
    - GET /profiles/       -> Discover profiles (excludes me, blocked and hidden)
    - GET /profiles/{id}/  -> Full profile (public or followed) or partial info
    - POST /profiles/{id}/follow/ -> Follow, or send a follow request
    - POST /profiles/{id}/unfollow/ -> Unfollow, or cancel a pending request
    - POST|DELETE /profiles/{id}/block/ -> Block / unblock
    - GET /profiles/my/followers/ -> Users following me
    - GET /profiles/my/following/ -> Users I follow
    - GET /profiles/suggested/ -> Who to follow
    """

    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ["is_public"]
    search_fields = ["username", "display_name", "^user__email"]
    pagination_class = NetworkPagination
    queryset = Profile.active.select_related("user")
    serializer_class = ProfileListSerializer
    permission_classes = (permissions.IsAuthenticated, HasActiveProfile)
    lookup_value_regex = r"\d+"

    def _annotate_relations(self, queryset, me):
        following_queryset = Follow.objects.filter(
            follower_id=me.id, following_id=OuterRef("pk")
        )
        pending_queryset = FollowRequest.objects.filter(
            requester_id=me.id,
            recipient_id=OuterRef("pk"),
            status=FollowRequest.RequestStatus.PENDING,
        )
        online_queryset = Presence.objects.filter(
            profile_id=OuterRef("pk"), last_active__gte=online_cutoff()
        )
        return queryset.annotate(
            is_following=Exists(following_queryset),
            is_requested=Exists(pending_queryset),
            is_online=Exists(online_queryset),
        ).annotate(
            follow_status=Case(
                When(is_following=True, then=Value(services.FOLLOWING)),
                When(is_requested=True, then=Value(services.REQUESTED)),
                default=Value(None),
                output_field=CharField(),
            )
        )

    def get_queryset(self):
        me = self.request.user.profile
        queryset = self._annotate_relations(super().get_queryset(), me)

        if self.action == "list":
            blocked = Block.objects.filter(
                Q(blocker_id=me.id, blocked_id=OuterRef("pk"))
                | Q(blocker_id=OuterRef("pk"), blocked_id=me.id)
            )
            queryset = (
                queryset.exclude(pk=me.pk)
                .filter(appear_in_discover=True)
                .exclude(Exists(blocked))
                .order_by("-followers_count", "-created_at")
            )

        return queryset

    def get_serializer_class(self):
        if self.action in ["follow", "unfollow", "block"]:
            return EmptySerializer
        if self.action in ["my_followers", "my_following"]:
            return NetworkProfileSerializer
        return ProfileListSerializer

    @extend_schema(
        description="Retrieve a profile. Returns full details if public, "
        "followed or own, otherwise partial details.",
        responses={
            200: OpenApiResponse(
                ProfileDetailSerializer, description="Full or partial profile"
            ),
        },
    )
    def retrieve(self, request, *args, **kwargs):
        inst = self.get_object()

        can_view_full = CanViewProfileDetail().has_object_permission(
            request, self, inst
        )
        if can_view_full:
            serializer = ProfileDetailSerializer(
                inst, context=self.get_serializer_context()
            )
        else:
            serializer = PrivateProfileSerializer(
                inst, context=self.get_serializer_context()
            )
        return Response(serializer.data)

    @extend_schema(
        description="Follow a user. 201 when the edge is created, 202 when a "
        "follow request is pending, 200 when already following.",
        responses={
            200: FollowResultSerializer,
            201: FollowResultSerializer,
            202: FollowResultSerializer,
            400: OpenApiResponse(description="Cannot follow yourself"),
            403: OpenApiResponse(description="Blocked"),
        },
    )
    @decorators.action(detail=True, methods=["post"])
    def follow(self, request, pk=None):
        """Follow or request to follow"""
        me = request.user.profile
        target = self.get_object()

        try:
            outcome = services.request_or_create_follow(me, target)
        except AlreadyFollowing:
            return Response(
                {"status": services.FOLLOWING, "already_following": True},
                status=status.HTTP_200_OK,
            )

        if outcome.status == services.REQUESTED:
            return Response(
                {
                    "detail": "Follow request sent (pending).",
                    "status": outcome.status,
                    "request_id": outcome.follow_request.pk,
                },
                status=status.HTTP_202_ACCEPTED,
            )

        return Response(
            {"detail": "Following.", "status": outcome.status},
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        description="Unfollow a user, or withdraw a pending follow request.",
        responses={200: FollowResultSerializer},
    )
    @decorators.action(detail=True, methods=["post"])
    def unfollow(self, request, pk=None):
        """Unfollow request"""
        me = request.user.profile
        target = self.get_object()
        result = services.unfollow(me, target)
        return Response({"detail": result, "status": services.NOT_FOLLOWING})

    @decorators.action(detail=True, methods=["post", "delete"])
    def block(self, request, pk=None):
        """POST blocks the user, DELETE lifts the block."""
        me = request.user.profile
        target = self.get_object()

        if request.method == "DELETE":
            removed = services.unblock(me, target)
            return Response({"blocked": False, "changed": removed})

        created = services.block(me, target)
        return Response(
            {"blocked": True, "changed": created},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    def _paginated(self, queryset):
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(
            page if page is not None else queryset, many=True
        )
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)

    @decorators.action(detail=False, methods=["get"], url_path="my/following")
    def my_following(self, request):
        """A list of all users the user is following."""
        me = request.user.profile
        edges = Follow.objects.filter(follower=me, following_id=OuterRef("pk"))
        queryset = (
            self.get_queryset()
            .filter(pk__in=Follow.objects.filter(follower=me).values("following_id"))
            .annotate(
                followed_at=Subquery(edges.values("created_at")[:1]),
                is_following_back=Exists(
                    Follow.objects.filter(follower_id=OuterRef("pk"), following=me)
                ),
            )
            .order_by("-followed_at")
        )
        return self._paginated(queryset)

    @decorators.action(detail=False, methods=["get"], url_path="my/followers")
    def my_followers(self, request):
        """List of all users who are following user."""
        me = request.user.profile
        edges = Follow.objects.filter(follower_id=OuterRef("pk"), following=me)
        queryset = (
            self.get_queryset()
            .filter(pk__in=Follow.objects.filter(following=me).values("follower_id"))
            .annotate(
                followed_at=Subquery(edges.values("created_at")[:1]),
                is_following_back=Exists(
                    Follow.objects.filter(follower=me, following_id=OuterRef("pk"))
                ),
            )
            .order_by("-followed_at")
        )
        return self._paginated(queryset)

    @extend_schema(
        description="Up to 10 profiles to follow: not followed yet, not "
        "blocked, and not opted out of suggestions.",
        responses={200: ProfileListSerializer(many=True)},
    )
    @decorators.action(detail=False, methods=["get"])
    def suggested(self, request):
        """Who to follow."""
        me = request.user.profile
        queryset = services.suggested_profiles(me, queryset=self.get_queryset())
        serializer = self.get_serializer(queryset, many=True)
        return Response(serializer.data)

    @extend_schema(
        description="Discover profiles excluding me, blocked users and profiles "
        "hidden from discovery. Sorted by popularity.",
        parameters=[
            OpenApiParameter(
                name="is_public", description="Filter by privacy status", type=bool
            ),
            OpenApiParameter(
                name="search",
                description="Search by username, display name or email prefix",
                type=str,
            ),
            OpenApiParameter(
                name="page", description="Page number for pagination", type=int
            ),
            OpenApiParameter(
                name="page_size", description="Number of results per page", type=int
            ),
        ],
        responses={200: ProfileListSerializer(many=True)},
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)


class FollowRequestViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    Follow requests waiting for my decision.
    - GET  /follow-requests/               -> Incoming pending requests
    - GET  /follow-requests/sent/          -> My outgoing pending requests
    - POST /follow-requests/{id}/approve/  -> Approve (creates the edge)
    - POST /follow-requests/{id}/reject/   -> Reject
    """

    serializer_class = FollowRequestSerializer
    permission_classes = (permissions.IsAuthenticated, HasActiveProfile)
    lookup_value_regex = r"\d+"
    pagination_class = None

    def get_queryset(self):
        return services.pending_requests(self.request.user.profile)

    def get_serializer_class(self):
        if self.action == "sent":
            return SentFollowRequestSerializer
        if self.action in ["approve", "reject"]:
            return FollowRequestResolutionSerializer
        return FollowRequestSerializer

    @decorators.action(detail=False, methods=["get"])
    def sent(self, request):
        queryset = services.sent_requests(request.user.profile)
        serializer = self.get_serializer(queryset, many=True)
        return Response(serializer.data)

    @extend_schema(request=None, responses={200: FollowRequestResolutionSerializer})
    @decorators.action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        """Approve a request addressed to me."""
        follow_request = services.approve_request(request.user.profile, int(pk))
        serializer = self.get_serializer(follow_request)
        return Response(
            {"detail": "Request approved.", **serializer.data},
            status=status.HTTP_200_OK,
        )

    @extend_schema(request=None, responses={200: FollowRequestResolutionSerializer})
    @decorators.action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        """Reject a request addressed to me."""
        follow_request = services.reject_request(request.user.profile, int(pk))
        serializer = self.get_serializer(follow_request)
        return Response(
            {"detail": "Request rejected.", **serializer.data},
            status=status.HTTP_200_OK,
        )
