from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework.exceptions import ValidationError

from user.models import Profile


class UserSerializer(serializers.ModelSerializer):
    """User serializer"""

    password = serializers.CharField(
        write_only=True,
        min_length=5,
        style={"input_type": "password"},
        trim_whitespace=False,
    )

    class Meta:
        model = get_user_model()
        fields = ("id", "email", "password", "is_staff")
        read_only_fields = ("is_staff",)
        extra_kwargs = {"password": {"write_only": True, "min_length": 5}}

    def create(self, validated_data):
        """Create a new user with encrypted password and return it"""

        return get_user_model().objects.create_user(**validated_data)

    def update(self, instance, validated_data):
        """Update a user, set the password correctly and return it"""

        password = validated_data.pop("password", None)
        user = super().update(instance, validated_data)

        if password:
            user.set_password(password)
            user.save()
        return user


class ProfileSerializer(serializers.ModelSerializer):
    """Own profile serializer"""

    email = serializers.CharField(source="user.email", read_only=True)

    class Meta:
        model = Profile
        fields = (
            "id",
            "email",
            "username",
            "display_name",
            "bio",
            "profile_picture",
            "is_public",
            "followers_count",
            "following_count",
            "created_at",
            "updated_at",
        )
        read_only_fields = ["followers_count", "following_count", "is_public"]

    def validate_username(self, value):
        value = value.lower()
        queryset = Profile.objects.filter(username=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise ValidationError("This username is already taken.")
        return value


class PrivacySerializer(serializers.ModelSerializer):
    """Privacy settings of the current profile."""

    requires_follow_approval = serializers.SerializerMethodField()

    class Meta:
        model = Profile
        fields = (
            "is_public",
            "require_follow_approval",
            "requires_follow_approval",
            "allow_suggestions",
            "appear_in_discover",
            "comment_permission",
            "mention_permission",
        )

    def get_requires_follow_approval(self, obj) -> bool:
        return obj.requires_follow_approval()


class DeleteAccountSerializer(serializers.Serializer):
    password = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
        trim_whitespace=False,
    )

    def validate_password(self, value):
        user = self.context["request"].user
        if not user.has_usable_password():
            raise ValidationError(
                "Please set a password before deleting your account."
            )
        if not user.check_password(value):
            raise ValidationError("Incorrect password.")
        return value
