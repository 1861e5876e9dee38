from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import decorators, permissions, status, viewsets
from rest_framework.response import Response

from notifications import services
from notifications.serializers import (
    MarkReadSerializer,
    NotificationListParamsSerializer,
    NotificationSerializer,
    UnreadCountSerializer,
    UpdatedCountSerializer,
)
from user.cache import get_profile_cards
from user.permissions import HasActiveProfile


class NotificationViewSet(viewsets.GenericViewSet):
    """
    My notifications.
    - GET    /notifications/?limit=&unread=  -> Newest first
    - DELETE /notifications/{id}/            -> Dismiss one
    - PATCH  /notifications/read/            -> Mark the given ids read
    - POST   /notifications/read-all/        -> Mark everything read
    - GET    /notifications/unread-count/    -> Unread badge count
    """

    serializer_class = NotificationSerializer
    permission_classes = (permissions.IsAuthenticated, HasActiveProfile)
    lookup_value_regex = r"\d+"
    pagination_class = None

    def get_serializer_class(self):
        if self.action == "read":
            return MarkReadSerializer
        return NotificationSerializer

    @extend_schema(
        parameters=[
            OpenApiParameter(name="limit", type=int, required=False),
            OpenApiParameter(name="unread", type=bool, required=False),
        ],
        responses={200: NotificationSerializer(many=True)},
    )
    def list(self, request):
        params = NotificationListParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        notifications = services.list_for(
            request.user.profile,
            limit=params.validated_data.get("limit"),
            unread_only=params.validated_data["unread"],
        )
        context = {
            **self.get_serializer_context(),
            "cards": get_profile_cards(n.actor_id for n in notifications),
            "media": services.context_media(notifications),
        }
        serializer = NotificationSerializer(notifications, many=True, context=context)
        return Response(serializer.data)

    def destroy(self, request, pk=None):
        services.dismiss(request.user.profile, int(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=MarkReadSerializer, responses={200: UpdatedCountSerializer})
    @decorators.action(detail=False, methods=["patch"])
    def read(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = services.mark_read(request.user.profile, serializer.validated_data["ids"])
        return Response({"updated": updated})

    @extend_schema(request=None, responses={200: UpdatedCountSerializer})
    @decorators.action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        return Response({"updated": services.mark_all_read(request.user.profile)})

    @extend_schema(responses={200: UnreadCountSerializer})
    @decorators.action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        return Response({"unread": services.unread_count(request.user.profile)})
