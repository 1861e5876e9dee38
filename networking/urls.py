from rest_framework import routers
from django.urls import path, include
from .views import FollowRequestViewSet, PublicProfileViewSet


app_name = "networking"
router = routers.DefaultRouter()

router.register("profiles", PublicProfileViewSet, basename="profiles")
router.register("follow-requests", FollowRequestViewSet, basename="follow-requests")

urlpatterns = [path("", include(router.urls))]
