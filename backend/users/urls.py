from django.urls import path

from .views import (
    CheckInView,
    CurrentUserView,
    LoginView,
    LogoutView,
    MemberCardQrView,
    MemberNotificationsView,
)

urlpatterns = [
    path("auth/login", LoginView.as_view(), name="auth-login"),
    path("auth/logout", LogoutView.as_view(), name="auth-logout"),
    path("auth/user", CurrentUserView.as_view(), name="auth-user"),
    path("member/notifications", MemberNotificationsView.as_view(), name="member-notifications"),
    path("member/card/qr", MemberCardQrView.as_view(), name="member-card-qr"),
    path("staff/check-in", CheckInView.as_view(), name="staff-check-in"),
]
