from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import connection
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from assistant.generation import get_generator
from mailer.models import EmailInteraction, InteractionType
from mailer.providers import get_email_provider
from mailer.services import DeliveryResult, send_tracked_email
from users.models import UserRole

from .models import ChurnEmail, ChurnEmailStatus, InvalidTransition, OutreachAction, RiskLevel
from .risk import RiskBand, at_risk_members, classify, high_risk_members
from .services import generate_for_member, send_email, staff_metrics
from .snapshots import MemberProfileSnapshot

OFFLINE = override_settings(
    GEMINI_API_KEY=None,
    EMAIL_PROVIDER="test",
    RESEND_API_KEY=None,
    SENDGRID_API_KEY=None,
)


def _clear_strategies():
    get_generator.cache_clear()
    get_email_provider.cache_clear()


def _member(username, last_visit=None, **extra):
    return get_user_model().objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="pass1234",
        first_name=username.title(),
        last_name="Tester",
        role=UserRole.MEMBER,
        last_visit=last_visit,
        **extra,
    )


class ClassifyTests(TestCase):
    def setUp(self):
        self.now = timezone.now()

    def _days_ago(self, days):
        return classify(self.now - timedelta(days=days), self.now)

    def test_never_visited_is_high(self):
        result = classify(None, self.now)
        self.assertEqual(result.level, RiskLevel.HIGH)
        self.assertEqual(result.band, RiskBand.NEVER_VISITED)
        self.assertEqual(result.percentage, 95)

    def test_eleven_days_is_high(self):
        result = self._days_ago(11)
        self.assertEqual((result.level, result.band, result.percentage), ("high", "high-risk", 89))

    def test_ten_days_is_still_medium(self):
        result = self._days_ago(10)
        self.assertEqual((result.level, result.band, result.percentage), ("medium", "medium-risk", 76))

    def test_eight_days_is_medium(self):
        self.assertEqual(self._days_ago(8).level, RiskLevel.MEDIUM)

    def test_seven_days_is_low(self):
        result = self._days_ago(7)
        self.assertEqual((result.level, result.band, result.percentage), ("low", "low-risk", 65))

    def test_recent_visit_is_active(self):
        for days in (0, 3, 5):
            result = self._days_ago(days)
            self.assertEqual(result.level, RiskLevel.LOW)
            self.assertEqual(result.band, RiskBand.ACTIVE)
            self.assertFalse(result.needs_outreach)

    def test_partial_days_are_truncated(self):
        result = classify(self.now - timedelta(days=10, hours=23), self.now)
        self.assertEqual(result.level, RiskLevel.MEDIUM)


class AtRiskMembersTests(TestCase):
    def test_selects_stale_and_never_visited_members_most_recent_first(self):
        now = timezone.now()
        six = _member("six", now - timedelta(days=6))
        twenty = _member("twenty", now - timedelta(days=20))
        never = _member("never")
        _member("fresh", now - timedelta(days=1))
        get_user_model().objects.create_user(
            username="coach",
            email="coach@example.com",
            password="pass1234",
            role=UserRole.STAFF,
        )

        self.assertEqual(list(at_risk_members(now)), [six, twenty, never])


@OFFLINE
class GenerateChurnEmailTests(TestCase):
    def setUp(self):
        _clear_strategies()
        self.addCleanup(_clear_strategies)
        self.now = timezone.now()

    def test_generates_pending_email_with_snapshot(self):
        member = _member("lapsed", self.now - timedelta(days=12))

        email = generate_for_member(member, now=self.now)

        self.assertIsNotNone(email)
        self.assertEqual(email.status, ChurnEmailStatus.PENDING)
        self.assertEqual(email.risk_level, RiskLevel.HIGH)
        self.assertEqual(email.current_risk_band, RiskBand.HIGH_RISK)
        self.assertIsNone(email.previous_risk_band)
        self.assertIn("Lapsed", email.subject)

        snapshot = MemberProfileSnapshot.model_validate(email.member_profile)
        self.assertEqual(snapshot.version, 1)
        self.assertEqual(snapshot, MemberProfileSnapshot.from_member(member))

    def test_active_member_gets_nothing(self):
        member = _member("regular", self.now - timedelta(days=2))
        self.assertIsNone(generate_for_member(member, now=self.now))
        self.assertFalse(ChurnEmail.objects.exists())

    def test_same_band_within_a_week_is_not_repeated(self):
        member = _member("lapsed", self.now - timedelta(days=9))
        self.assertIsNotNone(generate_for_member(member, now=self.now))
        self.assertIsNone(generate_for_member(member, now=self.now))
        self.assertEqual(ChurnEmail.objects.filter(member=member).count(), 1)

    def test_band_change_records_previous_band(self):
        member = _member("slipping", self.now - timedelta(days=8))
        first = generate_for_member(member, now=self.now)
        self.assertEqual(first.current_risk_band, RiskBand.MEDIUM_RISK)

        member.last_visit = self.now - timedelta(days=15)
        member.save(update_fields=["last_visit"])
        second = generate_for_member(member, now=self.now)

        self.assertEqual(second.current_risk_band, RiskBand.HIGH_RISK)
        self.assertEqual(second.previous_risk_band, RiskBand.MEDIUM_RISK)

    def test_old_email_in_same_band_does_not_block(self):
        member = _member("lapsed", self.now - timedelta(days=9))
        old = generate_for_member(member, now=self.now)
        ChurnEmail.objects.filter(pk=old.pk).update(created_at=self.now - timedelta(days=8))

        again = generate_for_member(member, now=self.now)
        self.assertIsNotNone(again)
        self.assertEqual(again.previous_risk_band, RiskBand.MEDIUM_RISK)


class ChurnEmailTransitionTests(TestCase):
    def setUp(self):
        self.member = _member("lapsed", timezone.now() - timedelta(days=12))
        self.staff = get_user_model().objects.create_user(
            username="coach",
            email="coach@example.com",
            password="pass1234",
            role=UserRole.STAFF,
        )
        self.email = ChurnEmail.objects.create(
            member=self.member,
            subject="We miss you",
            content="Come back soon [HOME_PAGE_LINK]",
            risk_level=RiskLevel.HIGH,
            current_risk_band=RiskBand.HIGH_RISK,
        )

    def test_pending_can_be_approved_or_rejected(self):
        self.assertTrue(self.email.can_transition_to(ChurnEmailStatus.APPROVED))
        self.assertTrue(self.email.can_transition_to(ChurnEmailStatus.REJECTED))
        self.assertFalse(self.email.can_transition_to(ChurnEmailStatus.SENT))

    def test_approve_stamps_reviewer(self):
        self.email.approve(self.staff)
        self.assertEqual(self.email.status, ChurnEmailStatus.APPROVED)
        self.assertEqual(self.email.approved_by, self.staff)
        self.assertIsNotNone(self.email.approved_at)

    def test_approving_twice_is_refused(self):
        self.email.approve(self.staff)
        with self.assertRaises(InvalidTransition):
            self.email.approve(self.staff)

    def test_terminal_states_are_absorbing(self):
        self.email.reject(self.staff)
        for target in ChurnEmailStatus.values:
            self.assertFalse(self.email.can_transition_to(target))

        sent = ChurnEmail(status=ChurnEmailStatus.SENT)
        with self.assertRaises(InvalidTransition):
            sent.approve(self.staff)

    def test_mark_sent_requires_approval(self):
        with self.assertRaises(InvalidTransition):
            self.email.mark_sent("abc")
        self.assertEqual(self.email.status, ChurnEmailStatus.PENDING)


@OFFLINE
class ChurnEmailApiTests(TestCase):
    def setUp(self):
        _clear_strategies()
        self.addCleanup(_clear_strategies)
        self.client = APIClient()
        self.member = _member("lapsed", timezone.now() - timedelta(days=12))
        self.staff = get_user_model().objects.create_user(
            username="coach",
            email="coach@example.com",
            password="pass1234",
            role=UserRole.STAFF,
        )
        self.client.force_authenticate(self.staff)
        self.email = ChurnEmail.objects.create(
            member=self.member,
            subject="We miss you",
            content="Hi [PROSPECT_NAME], come back soon.",
            risk_level=RiskLevel.HIGH,
            current_risk_band=RiskBand.HIGH_RISK,
        )

    def test_list_defaults_to_pending_queue(self):
        ChurnEmail.objects.create(
            member=self.member,
            subject="Old",
            content="Old",
            risk_level=RiskLevel.MEDIUM,
            current_risk_band=RiskBand.MEDIUM_RISK,
            status=ChurnEmailStatus.SENT,
        )
        res = self.client.get(reverse("churn-emails"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual([item["id"] for item in res.data], [self.email.id])
        self.assertEqual(res.data[0]["member_email"], "lapsed@example.com")
        self.assertEqual(res.data[0]["member_name"], "Lapsed Tester")

        everything = self.client.get(reverse("churn-emails"), {"status": "all"})
        self.assertEqual(len(everything.data), 2)

        sent = self.client.get(reverse("churn-emails"), {"status": "sent"})
        self.assertEqual(len(sent.data), 1)

    def test_list_rejects_unknown_status(self):
        res = self.client.get(reverse("churn-emails"), {"status": "archived"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approve_then_send_delivers_and_tracks(self):
        res = self.client.post(reverse("churn-emails-approve", args=[self.email.id]))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], ChurnEmailStatus.APPROVED)
        self.assertEqual(res.data["approved_by"], self.staff.id)

        res = self.client.post(reverse("churn-emails-send", args=[self.email.id]))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], ChurnEmailStatus.SENT)
        self.assertTrue(res.data["delivery"]["success"])

        self.email.refresh_from_db()
        self.assertIsNotNone(self.email.sent_at)
        self.assertTrue(self.email.tracking_id)
        sent_row = EmailInteraction.objects.get(tracking_id=self.email.tracking_id)
        self.assertEqual(sent_row.interaction_type, InteractionType.EMAIL_SENT)
        self.assertEqual(sent_row.prospect_email, "lapsed@example.com")
        self.assertEqual(sent_row.metadata["churn_email_id"], self.email.id)

    def test_send_without_approval_is_409(self):
        res = self.client.post(reverse("churn-emails-send", args=[self.email.id]))
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.email.refresh_from_db()
        self.assertEqual(self.email.status, ChurnEmailStatus.PENDING)
        self.assertFalse(EmailInteraction.objects.exists())

    def test_sent_email_cannot_be_approved_again(self):
        self.client.post(reverse("churn-emails-approve", args=[self.email.id]))
        self.client.post(reverse("churn-emails-send", args=[self.email.id]))

        res = self.client.post(reverse("churn-emails-approve", args=[self.email.id]))
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        res = self.client.post(reverse("churn-emails-send", args=[self.email.id]))
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.email.refresh_from_db()
        self.assertEqual(self.email.status, ChurnEmailStatus.SENT)

    def test_rejected_email_cannot_be_sent(self):
        res = self.client.post(reverse("churn-emails-reject", args=[self.email.id]))
        self.assertEqual(res.data["status"], ChurnEmailStatus.REJECTED)

        res = self.client.post(reverse("churn-emails-send", args=[self.email.id]))
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)

    def test_failed_delivery_keeps_email_approved(self):
        self.client.post(reverse("churn-emails-approve", args=[self.email.id]))
        failure = DeliveryResult(success=False, provider="resend", error="Resend error: 500")

        with mock.patch("retention.services.send_tracked_email", return_value=failure):
            res = self.client.post(reverse("churn-emails-send", args=[self.email.id]))

        self.assertEqual(res.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(res.data["delivery"]["error"], "Resend error: 500")
        self.email.refresh_from_db()
        self.assertEqual(self.email.status, ChurnEmailStatus.APPROVED)
        self.assertIsNone(self.email.sent_at)

    def test_delivery_runs_outside_the_row_lock(self):
        self.client.post(reverse("churn-emails-approve", args=[self.email.id]))
        depth = len(connection.savepoint_ids)
        seen = []

        def deliver(**kwargs):
            seen.append(len(connection.savepoint_ids))
            return send_tracked_email(**kwargs)

        with mock.patch("retention.services.send_tracked_email", side_effect=deliver):
            email, result = send_email(self.email)

        self.assertEqual(seen, [depth])
        self.assertTrue(result.success)
        self.assertEqual(email.status, ChurnEmailStatus.SENT)

    def test_email_rejected_during_delivery_is_not_marked_sent(self):
        self.client.post(reverse("churn-emails-approve", args=[self.email.id]))

        def deliver(**kwargs):
            ChurnEmail.objects.filter(pk=self.email.pk).update(status=ChurnEmailStatus.REJECTED)
            return send_tracked_email(**kwargs)

        with mock.patch("retention.services.send_tracked_email", side_effect=deliver):
            res = self.client.post(reverse("churn-emails-send", args=[self.email.id]))

        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.email.refresh_from_db()
        self.assertEqual(self.email.status, ChurnEmailStatus.REJECTED)
        self.assertIsNone(self.email.sent_at)
        self.assertTrue(
            EmailInteraction.objects.filter(
                prospect_email="lapsed@example.com",
                interaction_type=InteractionType.EMAIL_SENT,
            ).exists()
        )

    def test_missing_email_is_404(self):
        res = self.client.post(reverse("churn-emails-approve", args=[9999]))
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_member_cannot_manage_queue(self):
        self.client.force_authenticate(self.member)
        self.assertEqual(self.client.get(reverse("churn-emails")).status_code, status.HTTP_403_FORBIDDEN)
        res = self.client.post(reverse("churn-emails-approve", args=[self.email.id]))
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_always_within_enum(self):
        self.client.post(reverse("churn-emails-approve", args=[self.email.id]))
        self.client.post(reverse("churn-emails-reject", args=[self.email.id]))
        self.client.post(reverse("churn-emails-send", args=[self.email.id]))
        self.client.post(reverse("churn-emails-approve", args=[self.email.id]))
        statuses = set(ChurnEmail.objects.values_list("status", flat=True))
        self.assertTrue(statuses <= set(ChurnEmailStatus.values))

    def test_generate_endpoint_creates_pending_email(self):
        other = _member("gone", timezone.now() - timedelta(days=20))
        res = self.client.post(reverse("churn-emails-generate"), {"member_id": other.id}, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["status"], ChurnEmailStatus.PENDING)
        self.assertEqual(res.data["member_profile"]["version"], 1)

    def test_generate_endpoint_reports_when_nothing_needed(self):
        active = _member("active", timezone.now())
        res = self.client.post(reverse("churn-emails-generate"), {"member_id": active.id}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["detail"], "No churn email needed")

    def test_generate_endpoint_validates_member(self):
        res = self.client.post(reverse("churn-emails-generate"), {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        res = self.client.post(reverse("churn-emails-generate"), {"member_id": self.staff.id}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)


class StaffDashboardTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        now = timezone.now()
        self.lapsed = _member("lapsed", now - timedelta(days=12))
        self.regular = _member("regular", now - timedelta(days=1))
        self.staff = get_user_model().objects.create_user(
            username="coach",
            email="coach@example.com",
            password="pass1234",
            role=UserRole.STAFF,
        )
        self.client.force_authenticate(self.staff)

    def test_at_risk_members_include_assessment(self):
        res = self.client.get(reverse("staff-at-risk-members"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual([item["id"] for item in res.data], [self.lapsed.id])
        self.assertEqual(res.data[0]["risk_level"], RiskLevel.HIGH)
        self.assertEqual(res.data[0]["risk_percentage"], 89)

    def test_outreach_action_and_history(self):
        res = self.client.post(
            reverse("staff-outreach-action"),
            {"member": self.lapsed.id, "action_type": "call", "notes": "Left a voicemail"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["staff"], self.staff.id)

        history = self.client.get(reverse("staff-outreach-history", args=[self.lapsed.id]))
        self.assertEqual(history.status_code, status.HTTP_200_OK)
        self.assertEqual(len(history.data), 1)
        self.assertEqual(history.data[0]["action_type"], "call")

    def test_outreach_action_rejects_unknown_type(self):
        res = self.client.post(
            reverse("staff-outreach-action"),
            {"member": self.lapsed.id, "action_type": "carrier-pigeon"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(OutreachAction.objects.exists())

    def test_metrics(self):
        OutreachAction.objects.create(member=self.lapsed, staff=self.staff, action_type="email")
        res = self.client.get(reverse("staff-metrics"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["total_members"], 2)
        self.assertEqual(res.data["at_risk_members"], 1)
        self.assertEqual(res.data["churn_rate"], "50.0%")
        self.assertEqual(res.data["outreach_today"], 1)
        self.assertEqual(res.data["pending_approvals"], 0)

    def test_churn_rate_follows_whole_day_boundary(self):
        now = timezone.now()
        _member("almost", now - timedelta(days=10, hours=23))
        _member("eleven", now - timedelta(days=11))
        _member("never")

        metrics = staff_metrics(now)

        # lapsed, eleven and never out of five members
        self.assertEqual(metrics["total_members"], 5)
        self.assertEqual(metrics["churn_rate"], "60.0%")
        self.assertEqual(
            set(high_risk_members(now).values_list("username", flat=True)),
            {"lapsed", "eleven", "never"},
        )

    def test_notifications_flag_at_risk_members_and_approvals(self):
        ChurnEmail.objects.create(
            member=self.lapsed,
            subject="We miss you",
            content="Come back",
            risk_level=RiskLevel.HIGH,
            current_risk_band=RiskBand.HIGH_RISK,
        )
        res = self.client.get(reverse("staff-notifications"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        ids = [item["id"] for item in res.data]
        self.assertIn(f"risk-{self.lapsed.id}", ids)
        self.assertIn("churn-approvals", ids)
        risk = next(item for item in res.data if item["id"] == f"risk-{self.lapsed.id}")
        self.assertTrue(risk["urgent"])

    def test_member_cannot_view_dashboard(self):
        self.client.force_authenticate(self.lapsed)
        for name in ("staff-at-risk-members", "staff-metrics", "staff-notifications"):
            self.assertEqual(self.client.get(reverse(name)).status_code, status.HTTP_403_FORBIDDEN)
