from django.urls import path

from .views import (
    EmailStatusView,
    ProspectEngagementView,
    SendEmailView,
    TrackLinkView,
    VirtualTourView,
)

urlpatterns = [
    path("send-email", SendEmailView.as_view(), name="send-email"),
    path("email/status", EmailStatusView.as_view(), name="email-status"),
    path("track/<str:tracking_id>", TrackLinkView.as_view(), name="track-link"),
    path("virtual-tour/<str:tracking_id>", VirtualTourView.as_view(), name="virtual-tour"),
    path("prospect/<str:email>/engagement", ProspectEngagementView.as_view(), name="prospect-engagement"),
]
