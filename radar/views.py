from drf_spectacular.utils import extend_schema
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from radar import services
from radar.serializers import ActivitySerializer, LivePresenceSerializer
from user.cache import get_profile_cards
from user.permissions import HasActiveProfile


class ActivityView(APIView):
    """POST /radar/activity/ -> heartbeat with the current activity tag."""

    permission_classes = (permissions.IsAuthenticated, HasActiveProfile)

    @extend_schema(request=ActivitySerializer, responses={204: None})
    def post(self, request):
        serializer = ActivitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.record_activity(
            request.user.profile,
            activity=serializer.validated_data["activity"],
            video=serializer.validated_data.get("video"),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class LiveRadarView(APIView):
    """GET /radar/live/ -> who is active right now, followed users first."""

    permission_classes = (permissions.IsAuthenticated, HasActiveProfile)

    @extend_schema(responses={200: LivePresenceSerializer(many=True)})
    def get(self, request):
        snapshot = services.live_snapshot(request.user.profile)
        cards = get_profile_cards(presence.profile_id for presence in snapshot)
        serializer = LivePresenceSerializer(
            snapshot, many=True, context={"request": request, "cards": cards}
        )
        return Response({"users": serializer.data, "count": len(serializer.data)})
