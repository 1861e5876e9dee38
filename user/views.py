from django.db import transaction
from drf_spectacular.utils import extend_schema
from rest_framework import generics, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.reverse import reverse

from user.permissions import HasActiveProfile
from user.serializers import (
    DeleteAccountSerializer,
    PrivacySerializer,
    ProfileSerializer,
    UserSerializer,
)
from user.services import ensure_profile, soft_delete_account
from user.tasks import create_user_profile_task


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def user_api_root(request, format=None):
    return Response(
        {
            "register": reverse("user:create", request=request),
            "token_obtain_pair": reverse("user:token_obtain_pair", request=request),
            "token_refresh": reverse("user:token_refresh", request=request),
            "token_verify": reverse("user:token_verify", request=request),
            "me": reverse("user:manage", request=request),
            "profile_me": reverse("user:manage_profile", request=request),
            "privacy": reverse("user:privacy", request=request),
            "delete_account": reverse("user:delete_account", request=request),
        }
    )


class CreateUserView(generics.CreateAPIView):
    permission_classes = (AllowAny,)
    serializer_class = UserSerializer

    def perform_create(self, serializer):
        user = serializer.save()
        transaction.on_commit(lambda: create_user_profile_task.delay(user.id))


class ManageUserView(generics.RetrieveUpdateAPIView):
    serializer_class = UserSerializer
    permission_classes = (IsAuthenticated,)

    def get_object(self):
        return self.request.user


class ManageProfileView(generics.RetrieveUpdateAPIView):
    """
    Retrieve and update authenticated user's profile.
    GET - view own profile
    PUT/PATCH - update own profile
    """

    serializer_class = ProfileSerializer
    permission_classes = [IsAuthenticated]

    def get_object(self):
        """Own profile; created here when the background task has not run yet."""
        profile, _ = ensure_profile(self.request.user)
        return profile


class PrivacyView(generics.RetrieveUpdateAPIView):
    """Privacy settings: visibility, follow approval, discovery, comments, mentions."""

    serializer_class = PrivacySerializer
    permission_classes = [IsAuthenticated, HasActiveProfile]

    def get_object(self):
        return self.request.user.profile


class DeleteAccountView(generics.GenericAPIView):
    """Password-confirmed soft delete of the current account."""

    serializer_class = DeleteAccountSerializer
    permission_classes = [IsAuthenticated, HasActiveProfile]

    @extend_schema(responses={204: None})
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        soft_delete_account(request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
