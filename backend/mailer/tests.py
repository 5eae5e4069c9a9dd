from unittest import mock

import httpx
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import RequestFactory, TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from users.models import UserRole

from .models import EmailInteraction, InteractionType
from .providers import (
    RESEND_URL,
    SENDGRID_URL,
    ConsoleProvider,
    OutgoingEmail,
    ResendProvider,
    SendGridProvider,
    UnconfiguredProvider,
    build_email_provider,
    get_email_provider,
)
from .rendering import apply_placeholders, home_page_url, tracking_url
from .schemas import InteractionMetadata, metadata_from_request
from .services import send_tracked_email
from .tracking import engagement_summary, log_email_sent, log_link_clicked

OFFLINE = override_settings(
    EMAIL_PROVIDER="test",
    RESEND_API_KEY=None,
    SENDGRID_API_KEY=None,
    PUBLIC_BASE_URL="https://club.example.com",
)


def _message():
    return OutgoingEmail(
        to_email="alex@example.com",
        to_name="Alex",
        subject="Welcome",
        html="<p>Hi</p>",
        text="Hi",
    )


def _response(code, request_url, **kwargs):
    return httpx.Response(code, request=httpx.Request("POST", request_url), **kwargs)


@override_settings(PUBLIC_BASE_URL="https://club.example.com")
class PlaceholderTests(TestCase):
    def test_all_placeholders_are_replaced(self):
        content = (
            "Hi [PROSPECT_NAME], take the tour: [VIRTUAL_TOUR_LINK]\n"
            "Home: [HOME_PAGE_LINK]\nUnsubscribe: [UNSUBSCRIBE_LINK]"
        )
        result = apply_placeholders(content, tracking_id="abc123", to_email="alex@example.com", to_name="Alex")

        self.assertNotIn("[", result)
        self.assertIn("Hi Alex", result)
        self.assertIn("https://club.example.com/api/track/abc123", result)
        self.assertIn("https://club.example.com/unsubscribe?email=alex%40example.com", result)
        self.assertEqual(result.count(home_page_url("abc123")), 1)

    def test_home_link_appended_when_missing(self):
        result = apply_placeholders("Hello there", tracking_id="abc123", to_email="a@b.com", to_name="")
        self.assertTrue(result.startswith("Hello there"))
        self.assertTrue(result.endswith(home_page_url("abc123")))

    def test_tracking_url_points_at_redirect_endpoint(self):
        self.assertEqual(tracking_url("xyz"), "https://club.example.com/api/track/xyz")


class ProviderSelectionTests(TestCase):
    def setUp(self):
        get_email_provider.cache_clear()
        self.addCleanup(get_email_provider.cache_clear)

    @override_settings(EMAIL_PROVIDER=None, RESEND_API_KEY="re_key", SENDGRID_API_KEY="sg_key")
    def test_resend_key_wins(self):
        self.assertIsInstance(build_email_provider(), ResendProvider)

    @override_settings(EMAIL_PROVIDER=None, RESEND_API_KEY=None, SENDGRID_API_KEY="sg_key")
    def test_sendgrid_when_only_its_key_is_set(self):
        self.assertIsInstance(build_email_provider(), SendGridProvider)

    @override_settings(EMAIL_PROVIDER=None, RESEND_API_KEY=None, SENDGRID_API_KEY=None)
    def test_falls_back_to_log_only_provider(self):
        provider = build_email_provider()
        self.assertIsInstance(provider, ConsoleProvider)
        self.assertEqual(provider.name, "test")

    @override_settings(EMAIL_PROVIDER="sendgrid", RESEND_API_KEY="re_key", SENDGRID_API_KEY=None)
    def test_explicit_provider_without_key_fails_every_send(self):
        provider = build_email_provider()
        self.assertIsInstance(provider, UnconfiguredProvider)
        result = provider.send(_message())
        self.assertFalse(result.success)
        self.assertIn("sendgrid", result.error)

    @override_settings(EMAIL_PROVIDER=None, RESEND_API_KEY=None, SENDGRID_API_KEY=None)
    def test_provider_is_resolved_once(self):
        self.assertIs(get_email_provider(), get_email_provider())


class HttpProviderTests(TestCase):
    def test_resend_success_returns_message_id(self):
        client = mock.Mock()
        client.post.return_value = _response(200, RESEND_URL, json={"id": "re_123"})

        result = ResendProvider("re_key", client=client).send(_message())

        self.assertTrue(result.success)
        self.assertEqual(result.message_id, "re_123")
        _, kwargs = client.post.call_args
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer re_key")
        self.assertEqual(kwargs["json"]["to"], ["alex@example.com"])

    def test_resend_error_is_reported_not_raised(self):
        client = mock.Mock()
        client.post.return_value = _response(422, RESEND_URL, json={"message": "bad"})

        result = ResendProvider("re_key", client=client).send(_message())

        self.assertFalse(result.success)
        self.assertIn("422", result.error)

    def test_resend_network_failure(self):
        client = mock.Mock()
        client.post.side_effect = httpx.ConnectError("boom")

        result = ResendProvider("re_key", client=client).send(_message())
        self.assertFalse(result.success)

    def test_sendgrid_reads_message_id_header(self):
        client = mock.Mock()
        client.post.return_value = _response(202, SENDGRID_URL, headers={"x-message-id": "sg-1"})

        result = SendGridProvider("sg_key", client=client).send(_message())

        self.assertTrue(result.success)
        self.assertEqual(result.message_id, "sg-1")
        _, kwargs = client.post.call_args
        self.assertEqual(kwargs["json"]["personalizations"][0]["to"][0]["email"], "alex@example.com")


@OFFLINE
class SendTrackedEmailTests(TestCase):
    def setUp(self):
        get_email_provider.cache_clear()
        self.addCleanup(get_email_provider.cache_clear)

    def test_successful_send_logs_email_sent(self):
        result = send_tracked_email(
            to_email="alex@example.com",
            subject="Your tour",
            content="Hi [PROSPECT_NAME]: [VIRTUAL_TOUR_LINK]",
            to_name="Alex",
        )

        self.assertTrue(result.success)
        self.assertEqual(result.provider, "test")
        self.assertEqual(len(result.tracking_id), 32)
        row = EmailInteraction.objects.get(tracking_id=result.tracking_id)
        self.assertEqual(row.interaction_type, InteractionType.EMAIL_SENT)
        self.assertEqual(row.prospect_name, "Alex")
        self.assertEqual(row.metadata["provider"], "test")
        self.assertEqual(row.metadata["version"], 1)

    def test_each_send_gets_a_fresh_tracking_id(self):
        first = send_tracked_email("a@example.com", "One", "Hi")
        second = send_tracked_email("a@example.com", "Two", "Hi")
        self.assertNotEqual(first.tracking_id, second.tracking_id)

    def test_logging_failure_does_not_fail_send(self):
        with mock.patch.object(EmailInteraction.objects, "create", side_effect=DatabaseError("down")):
            result = send_tracked_email("alex@example.com", "Hi", "Hello")
        self.assertTrue(result.success)
        self.assertFalse(EmailInteraction.objects.exists())

    def test_failed_delivery_is_not_logged(self):
        with override_settings(EMAIL_PROVIDER="resend", RESEND_API_KEY=None):
            get_email_provider.cache_clear()
            result = send_tracked_email("alex@example.com", "Hi", "Hello")

        self.assertFalse(result.success)
        self.assertIsNone(result.tracking_id)
        self.assertTrue(result.error)
        self.assertFalse(EmailInteraction.objects.exists())


class TrackingLogTests(TestCase):
    def setUp(self):
        self.sent = log_email_sent(
            to_email="alex@example.com",
            to_name="Alex",
            subject="Your tour",
            tracking_id="track-1",
            metadata=InteractionMetadata(provider="resend", message_id="re_1"),
        )

    def test_click_without_send_is_not_recorded(self):
        self.assertIsNone(log_link_clicked("unknown", InteractionMetadata(ip="1.2.3.4")))
        self.assertEqual(EmailInteraction.objects.count(), 1)

    def test_click_inherits_identity_and_merges_metadata(self):
        click = log_link_clicked("track-1", InteractionMetadata(user_agent="Firefox", ip="1.2.3.4"))

        self.assertEqual(click.interaction_type, InteractionType.LINK_CLICKED)
        self.assertEqual(click.prospect_email, "alex@example.com")
        self.assertEqual(click.metadata["provider"], "resend")
        self.assertEqual(click.metadata["message_id"], "re_1")
        self.assertEqual(click.metadata["user_agent"], "Firefox")
        self.assertEqual(click.metadata["ip"], "1.2.3.4")

        self.sent.refresh_from_db()
        self.assertNotIn("user_agent", self.sent.metadata)

    def test_click_without_user_agent_keeps_recorded_one(self):
        log_email_sent(
            to_email="sam@example.com",
            to_name="Sam",
            subject="Your tour",
            tracking_id="track-2",
            metadata=InteractionMetadata(provider="resend", user_agent="Outlook", ip="10.0.0.1"),
        )
        request = RequestFactory().get("/api/track/track-2")
        request.META.pop("REMOTE_ADDR", None)

        click = log_link_clicked("track-2", metadata_from_request(request))

        self.assertEqual(click.metadata["user_agent"], "Outlook")
        self.assertEqual(click.metadata["ip"], "10.0.0.1")

    def test_request_metadata_sets_only_present_fields(self):
        request = RequestFactory().get("/", HTTP_X_FORWARDED_FOR="5.6.7.8, 10.0.0.1")

        metadata = metadata_from_request(request)

        self.assertEqual(metadata.ip, "5.6.7.8")
        self.assertNotIn("user_agent", metadata.model_fields_set)

    def test_engagement_summary_counts_by_type(self):
        log_link_clicked("track-1", InteractionMetadata())
        log_link_clicked("track-1", InteractionMetadata())

        summary = engagement_summary("ALEX@example.com")
        self.assertEqual(summary["emails_sent"], 1)
        self.assertEqual(summary["links_clicked"], 2)
        self.assertEqual(summary["tours_viewed"], 0)
        self.assertEqual(summary["total_interactions"], 3)
        self.assertIsNotNone(summary["last_interaction_at"])


class TrackingEndpointTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        log_email_sent(
            to_email="alex@example.com",
            to_name="Alex",
            subject="Your tour",
            tracking_id="track-1",
            metadata=InteractionMetadata(provider="test"),
        )

    def test_unknown_tracking_id_still_redirects(self):
        res = self.client.get(reverse("track-link", args=["does-not-exist"]))
        self.assertEqual(res.status_code, status.HTTP_302_FOUND)
        self.assertEqual(res["Location"], "/")
        self.assertEqual(EmailInteraction.objects.count(), 1)

    def test_valid_tracking_id_logs_click_and_redirects_to_tour(self):
        res = self.client.get(reverse("track-link", args=["track-1"]), HTTP_USER_AGENT="Safari")

        self.assertEqual(res.status_code, status.HTTP_302_FOUND)
        self.assertEqual(res["Location"], "/virtual-tour?track=track-1")
        clicks = EmailInteraction.objects.filter(interaction_type=InteractionType.LINK_CLICKED)
        self.assertEqual(clicks.count(), 1)
        self.assertEqual(clicks.get().tracking_id, "track-1")
        self.assertEqual(clicks.get().metadata["user_agent"], "Safari")

    def test_redirect_survives_logging_failure(self):
        with mock.patch("mailer.views.log_link_clicked", side_effect=DatabaseError("down")):
            res = self.client.get(reverse("track-link", args=["track-1"]))
        self.assertEqual(res.status_code, status.HTTP_302_FOUND)

    def test_redirect_survives_unreadable_send_metadata(self):
        EmailInteraction.objects.filter(tracking_id="track-1").update(metadata={"version": 2})

        res = self.client.get(reverse("track-link", args=["track-1"]))

        self.assertEqual(res.status_code, status.HTTP_302_FOUND)
        self.assertEqual(res["Location"], "/")
        self.assertEqual(EmailInteraction.objects.count(), 1)

    def test_virtual_tour_survives_logging_failure(self):
        with mock.patch("mailer.views.log_tour_viewed", side_effect=DatabaseError("down")):
            res = self.client.get(reverse("virtual-tour", args=["track-1"]))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["prospect_name"], "Alex")

    def test_virtual_tour_survives_unreadable_send_metadata(self):
        EmailInteraction.objects.filter(tracking_id="track-1").update(metadata={"version": 2})

        res = self.client.get(reverse("virtual-tour", args=["track-1"]))

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["prospect_email"], "alex@example.com")

    def test_virtual_tour_returns_prospect(self):
        res = self.client.get(reverse("virtual-tour", args=["track-1"]))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertTrue(res.data["success"])
        self.assertEqual(res.data["prospect_name"], "Alex")
        self.assertEqual(res.data["prospect_email"], "alex@example.com")
        self.assertTrue(
            EmailInteraction.objects.filter(
                tracking_id="track-1",
                interaction_type=InteractionType.TOUR_VIEWED,
            ).exists()
        )

    def test_virtual_tour_unknown_id_is_404(self):
        res = self.client.get(reverse("virtual-tour", args=["nope"]))
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data, {"success": False, "message": "Tracking ID not found"})


@OFFLINE
class StaffEmailEndpointTests(TestCase):
    def setUp(self):
        get_email_provider.cache_clear()
        self.addCleanup(get_email_provider.cache_clear)
        self.client = APIClient()
        User = get_user_model()
        self.staff = User.objects.create_user(
            username="coach",
            email="coach@example.com",
            password="pass1234",
            role=UserRole.STAFF,
        )
        self.member = User.objects.create_user(
            username="member",
            email="member@example.com",
            password="pass1234",
            role=UserRole.MEMBER,
        )

    def _payload(self, **overrides):
        payload = {
            "to": "prospect@example.com",
            "subject": "Come and see us",
            "content": "Hi [PROSPECT_NAME], tour here: [VIRTUAL_TOUR_LINK]",
            "prospect_name": "Jordan",
        }
        payload.update(overrides)
        return payload

    def test_staff_sends_email(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(reverse("send-email"), self._payload(), format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertTrue(res.data["success"])
        self.assertTrue(EmailInteraction.objects.filter(tracking_id=res.data["tracking_id"]).exists())

    def test_invalid_address_is_400(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(reverse("send-email"), self._payload(to="not-an-email"), format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_fields_are_400(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(reverse("send-email"), {"to": "prospect@example.com"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_member_cannot_send(self):
        self.client.force_authenticate(self.member)
        res = self.client.post(reverse("send-email"), self._payload(), format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_email_status(self):
        self.client.force_authenticate(self.staff)
        res = self.client.get(reverse("email-status"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["provider"], "test")
        self.assertFalse(res.data["configured"])

    def test_prospect_engagement(self):
        self.client.force_authenticate(self.staff)
        sent = self.client.post(reverse("send-email"), self._payload(), format="json")
        self.client.get(reverse("track-link", args=[sent.data["tracking_id"]]))

        res = self.client.get(reverse("prospect-engagement", args=["prospect@example.com"]))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["summary"]["emails_sent"], 1)
        self.assertEqual(res.data["summary"]["links_clicked"], 1)
        self.assertEqual(len(res.data["interactions"]), 2)
