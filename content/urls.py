from rest_framework import routers
from django.urls import path, include
from .views import VideoViewSet, CommentViewSet

app_name = "content"
router = routers.DefaultRouter()

router.register("videos", VideoViewSet, basename="videos")
router.register("comments", CommentViewSet, basename="comments")

urlpatterns = [path("", include(router.urls))]
