from django.urls import path

from radar.views import ActivityView, LiveRadarView

app_name = "radar"

urlpatterns = [
    path("activity/", ActivityView.as_view(), name="activity"),
    path("live/", LiveRadarView.as_view(), name="live"),
]
