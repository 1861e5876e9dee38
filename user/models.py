import pathlib
import uuid

from django.conf import settings
from django.contrib.auth.models import (
    AbstractUser,
    BaseUserManager,
)
from django.db import models
from django.utils.translation import gettext as _


class UserManager(BaseUserManager):
    """Define a model manager for User model with no username field."""

    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        """Create and save a User with the given email and password."""
        if not email:
            raise ValueError("The email must be set")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        """Create and save a User with the given email and password."""
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password, **extra_fields):
        """Create and save a SuperUser with the given email and password."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    """
    Identity only:
    - login by email, no username
    - display data, counters and privacy live on Profile
    """

    username = None
    first_name = None
    last_name = None
    email = models.EmailField(_("email address"), unique=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    @property
    def full_name(self):
        if hasattr(self, "profile"):
            return self.profile.full_name
        return self.email.split("@")[0]


def profile_image_path(instance: "Profile", filename: str) -> str:
    """Generate unique path to profile image."""
    ext = pathlib.Path(filename).suffix
    filename = f"{instance.user.id}-{uuid.uuid4()}{ext}"
    return f"upload/profile/{filename}"


class ActiveProfileManager(models.Manager):
    """Profiles that were not soft-deleted."""

    def get_queryset(self):
        return super().get_queryset().filter(is_deleted=False)


class Profile(models.Model):
    """Social identity of a user: handle, counters, privacy and lifecycle."""

    class CommentPermission(models.TextChoices):
        EVERYONE = "everyone"
        FOLLOWERS = "followers"
        NO_ONE = "no_one"

    class MentionPermission(models.TextChoices):
        EVERYONE = "everyone"
        FOLLOWERS = "followers"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile"
    )
    username = models.SlugField(max_length=50, unique=True)
    display_name = models.CharField(max_length=100, blank=True)
    bio = models.TextField(max_length=500, blank=True)
    profile_picture = models.ImageField(
        blank=True, null=True, upload_to=profile_image_path
    )

    followers_count = models.PositiveIntegerField(default=0)
    following_count = models.PositiveIntegerField(default=0)

    is_public = models.BooleanField(default=True)
    require_follow_approval = models.BooleanField(null=True, default=None)
    allow_suggestions = models.BooleanField(default=True)
    appear_in_discover = models.BooleanField(default=True)
    comment_permission = models.CharField(
        max_length=10,
        choices=CommentPermission.choices,
        default=CommentPermission.EVERYONE,
    )
    mention_permission = models.CharField(
        max_length=10,
        choices=MentionPermission.choices,
        default=MentionPermission.EVERYONE,
    )

    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = models.Manager()
    active = ActiveProfileManager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_public"], name="profile_public_idx"),
            models.Index(
                fields=["is_deleted", "appear_in_discover"], name="profile_discover_idx"
            ),
            models.Index(fields=["-followers_count"], name="profile_followers_idx"),
            models.Index(fields=["-created_at"], name="profile_created_idx"),
        ]

    @property
    def full_name(self):
        return self.display_name or self.username

    def requires_follow_approval(self) -> bool:
        """
        An explicit require_follow_approval wins; when it is unset a
        private account gates followers and a public one does not.
        """
        if self.require_follow_approval is not None:
            return self.require_follow_approval
        return not self.is_public

    def can_view_details(self, viewer_user) -> bool:
        """
        Privacy Rules :
        - if public profile: can see all
        - owner can see
        - else need a Follow edge from viewer -> self
        """
        if self.is_public:
            return True

        if not getattr(viewer_user, "is_authenticated", False):
            return False

        if viewer_user.id == self.user_id:
            return True

        viewer_profile = getattr(viewer_user, "profile", None)
        if viewer_profile is None:
            return False

        from networking.models import Follow

        return Follow.objects.filter(
            follower_id=viewer_profile.id, following_id=self.id
        ).exists()

    def __str__(self):
        return f"Profile of {self.full_name}"
