from django.urls import path

from .views import (
    ApproveChurnEmailView,
    AtRiskMembersView,
    ChurnEmailListView,
    GenerateChurnEmailView,
    OutreachActionView,
    OutreachHistoryView,
    RejectChurnEmailView,
    SendChurnEmailView,
    StaffMetricsView,
    StaffNotificationsView,
)

urlpatterns = [
    path("staff/at-risk-members", AtRiskMembersView.as_view(), name="staff-at-risk-members"),
    path("staff/churn-emails", ChurnEmailListView.as_view(), name="churn-emails"),
    path("staff/churn-emails/generate", GenerateChurnEmailView.as_view(), name="churn-emails-generate"),
    path("staff/churn-emails/<int:pk>/approve", ApproveChurnEmailView.as_view(), name="churn-emails-approve"),
    path("staff/churn-emails/<int:pk>/reject", RejectChurnEmailView.as_view(), name="churn-emails-reject"),
    path("staff/churn-emails/<int:pk>/send", SendChurnEmailView.as_view(), name="churn-emails-send"),
    path(
        "staff/member/<int:member_id>/outreach-history",
        OutreachHistoryView.as_view(),
        name="staff-outreach-history",
    ),
    path("staff/outreach-action", OutreachActionView.as_view(), name="staff-outreach-action"),
    path("staff/metrics", StaffMetricsView.as_view(), name="staff-metrics"),
    path("staff/notifications", StaffNotificationsView.as_view(), name="staff-notifications"),
]
