from django.urls import include, path
from rest_framework import routers

from notifications.views import NotificationViewSet

app_name = "notifications"

router = routers.SimpleRouter()
router.register("", NotificationViewSet, basename="notifications")

urlpatterns = [path("", include(router.urls))]
