import uuid
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from .models import MembershipType, UserRole
from .services import MAX_MEMBER_NOTIFICATIONS, build_member_notifications


class AuthViewTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = get_user_model().objects.create_user(
            username="sarah",
            email="sarah@example.com",
            password="pass1234",
            role=UserRole.MEMBER,
        )

    def test_login_by_email_returns_user(self):
        res = self.client.post(
            reverse("auth-login"),
            {"email": "Sarah@Example.com", "password": "pass1234"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["id"], self.user.id)
        self.assertEqual(res.data["role"], UserRole.MEMBER)

        me = self.client.get(reverse("auth-user"))
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data["email"], "sarah@example.com")

    def test_login_unknown_email_is_404(self):
        res = self.client.post(
            reverse("auth-login"),
            {"email": "nobody@example.com", "password": "pass1234"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_login_wrong_password_is_401(self):
        res = self.client.post(
            reverse("auth-login"),
            {"email": "sarah@example.com", "password": "wrong"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_current_user_requires_login(self):
        res = self.client.get(reverse("auth-user"))
        self.assertIn(res.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))


class MemberPortalTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        User = get_user_model()
        self.member = User.objects.create_user(
            username="member",
            email="member@example.com",
            password="pass1234",
            role=UserRole.MEMBER,
            membership_type=MembershipType.PREMIUM,
        )
        self.staff = User.objects.create_user(
            username="staff",
            email="staff@example.com",
            password="pass1234",
            role=UserRole.STAFF,
            membership_type=None,
        )

    def test_new_member_defaults(self):
        self.assertEqual(self.member.loyalty_points, 1250)
        self.assertIsNone(self.member.last_visit)
        self.assertIsNotNone(self.member.public_id)

    def test_member_notifications_are_capped_and_newest_first(self):
        self.client.force_authenticate(self.member)
        res = self.client.get(reverse("member-notifications"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertLessEqual(len(res.data), MAX_MEMBER_NOTIFICATIONS)
        timestamps = [item["timestamp"] for item in res.data]
        self.assertEqual(timestamps, sorted(timestamps, reverse=True))
        ids = {item["id"] for item in res.data}
        self.assertIn(f"loyalty-milestone-{self.member.id}", ids)
        self.assertIn(f"welcome-{self.member.id}", ids)

    def test_comeback_notification_after_a_week_away(self):
        now = timezone.now()
        self.member.last_visit = now - timedelta(days=9)
        notifications = build_member_notifications(self.member, now=now)
        comeback = [item for item in notifications if item["id"] == f"comeback-{self.member.id}"]
        self.assertEqual(len(comeback), 1)
        self.assertIn("9 days", comeback[0]["message"])

    def test_staff_cannot_read_member_notifications(self):
        self.client.force_authenticate(self.staff)
        res = self.client.get(reverse("member-notifications"))
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_member_card_qr_is_png(self):
        self.client.force_authenticate(self.member)
        res = self.client.get(reverse("member-card-qr"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res["Content-Type"], "image/png")
        self.assertTrue(res.content.startswith(b"\x89PNG"))


class CheckInTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        User = get_user_model()
        self.member = User.objects.create_user(
            username="member",
            email="member@example.com",
            password="pass1234",
            role=UserRole.MEMBER,
        )
        self.staff = User.objects.create_user(
            username="staff",
            email="staff@example.com",
            password="pass1234",
            role=UserRole.STAFF,
        )

    def test_staff_check_in_records_visit(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(
            reverse("staff-check-in"),
            {"public_id": str(self.member.public_id)},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.member.refresh_from_db()
        self.assertIsNotNone(self.member.last_visit)
        self.assertLess(timezone.now() - self.member.last_visit, timedelta(minutes=1))

    def test_check_in_rejects_bad_public_id(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(reverse("staff-check-in"), {"public_id": "not-a-uuid"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_check_in_unknown_card_is_404(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(reverse("staff-check-in"), {"public_id": str(uuid.uuid4())}, format="json")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_member_cannot_check_in(self):
        self.client.force_authenticate(self.member)
        res = self.client.post(
            reverse("staff-check-in"),
            {"public_id": str(self.member.public_id)},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
