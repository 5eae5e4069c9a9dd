import json
from datetime import timedelta
from unittest import mock

import httpx
from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from retention.snapshots import MemberProfileSnapshot
from users.models import UserRole

from .generation import (
    GEMINI_ENDPOINT,
    GeminiGenerator,
    GenerationError,
    MockGenerator,
    build_generator,
    get_generator,
)
from .models import WorkoutPlan


def _gemini_response(text, code=200):
    url = GEMINI_ENDPOINT.format(model="gemini-test")
    body = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    return httpx.Response(code, json=body, request=httpx.Request("POST", url))


def _profile(days_away=12):
    return MemberProfileSnapshot(
        first_name="Jamie",
        last_name="Fox",
        email="jamie@example.com",
        membership_type="premium",
        join_date=timezone.now() - timedelta(days=400),
        last_visit=timezone.now() - timedelta(days=days_away),
        loyalty_points=900,
    )


class GeneratorSelectionTests(TestCase):
    def setUp(self):
        get_generator.cache_clear()
        self.addCleanup(get_generator.cache_clear)

    @override_settings(GEMINI_API_KEY="g-key", GEMINI_MODEL="gemini-test")
    def test_live_generator_when_key_present(self):
        generator = build_generator()
        self.assertIsInstance(generator, GeminiGenerator)
        self.assertEqual(generator.model, "gemini-test")

    @override_settings(GEMINI_API_KEY=None)
    def test_mock_generator_without_key(self):
        self.assertIsInstance(get_generator(), MockGenerator)
        self.assertIs(get_generator(), get_generator())


class MockGeneratorTests(TestCase):
    def test_churn_email_tone_follows_risk_level(self):
        generator = MockGenerator()
        high = generator.churn_email(_profile(), "high", "high-risk")
        medium = generator.churn_email(_profile(9), "medium", "medium-risk")
        low = generator.churn_email(_profile(6), "low", "low-risk")

        self.assertIn("We miss you", high.subject)
        self.assertIn("momentum", medium.subject)
        self.assertIn("New classes", low.subject)
        for email in (high, medium, low):
            self.assertIn("Jamie", email.subject)
            self.assertIn("[HOME_PAGE_LINK]", email.content)
            self.assertIn("[UNSUBSCRIBE_LINK]", email.content)

    def test_output_is_deterministic(self):
        self.assertEqual(
            MockGenerator().churn_email(_profile(), "high", "high-risk"),
            MockGenerator().churn_email(_profile(), "high", "high-risk"),
        )


class GeminiGeneratorTests(TestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.generator = GeminiGenerator("g-key", "gemini-test", client=self.client)

    def test_churn_email_parses_json_reply(self):
        reply = json.dumps({"subject": "Come back, Jamie", "content": "We saved your spot."})
        self.client.post.return_value = _gemini_response(reply)

        email = self.generator.churn_email(_profile(), "high", "high-risk", "medium-risk")

        self.assertEqual(email.subject, "Come back, Jamie")
        self.assertEqual(email.content, "We saved your spot.")
        args, kwargs = self.client.post.call_args
        self.assertEqual(args[0], GEMINI_ENDPOINT.format(model="gemini-test"))
        self.assertEqual(kwargs["headers"]["x-goog-api-key"], "g-key")
        prompt = kwargs["json"]["contents"][0]["parts"][0]["text"]
        self.assertIn("Moving from medium-risk to high-risk", prompt)

    def test_churn_email_falls_back_to_labelled_text(self):
        self.client.post.return_value = _gemini_response("Subject: Hello Jamie\nContent:\nSee you soon.")

        email = self.generator.churn_email(_profile(), "high", "high-risk")

        self.assertEqual(email.subject, "Hello Jamie")
        self.assertEqual(email.content, "See you soon.")

    def test_http_failure_raises_generation_error(self):
        self.client.post.return_value = _gemini_response("", code=500)
        with self.assertRaises(GenerationError):
            self.generator.retention_strategies({"name": "Jamie"})

    def test_malformed_reply_raises_generation_error(self):
        url = GEMINI_ENDPOINT.format(model="gemini-test")
        self.client.post.return_value = httpx.Response(
            200, json={"candidates": []}, request=httpx.Request("POST", url)
        )
        with self.assertRaises(GenerationError):
            self.generator.sales_email("Write", "Be brief")

    def test_loyalty_offers_requires_offer_list(self):
        self.client.post.return_value = _gemini_response(json.dumps({"nothing": []}))
        with self.assertRaises(GenerationError):
            self.generator.loyalty_offers("students")

    def test_sales_email_uses_system_instruction_and_model(self):
        self.client.post.return_value = _gemini_response("Subject: Hi")

        self.generator.sales_email("Write an email", "You are a sales rep", model="gemini-pro")

        args, kwargs = self.client.post.call_args
        self.assertEqual(args[0], GEMINI_ENDPOINT.format(model="gemini-pro"))
        self.assertEqual(kwargs["json"]["systemInstruction"]["parts"][0]["text"], "You are a sales rep")

    def test_churn_chat_sends_context_as_system_instruction(self):
        self.client.post.return_value = _gemini_response("Focus on members away for two weeks.")

        reply = self.generator.churn_chat("Who should we call today?", "weekly_review")

        self.assertEqual(reply, "Focus on members away for two weeks.")
        _, kwargs = self.client.post.call_args
        self.assertEqual(kwargs["json"]["contents"][0]["parts"][0]["text"], "Who should we call today?")
        instruction = kwargs["json"]["systemInstruction"]["parts"][0]["text"]
        self.assertIn("Churn Analysis", instruction)
        self.assertIn("Context: weekly_review", instruction)

    def test_churn_chat_defaults_context(self):
        self.client.post.return_value = _gemini_response("ok")

        self.generator.churn_chat("Summarise churn")

        _, kwargs = self.client.post.call_args
        instruction = kwargs["json"]["systemInstruction"]["parts"][0]["text"]
        self.assertIn("Context: general_churn_analysis", instruction)


@override_settings(GEMINI_API_KEY=None)
class AssistantApiTests(TestCase):
    def setUp(self):
        get_generator.cache_clear()
        self.addCleanup(get_generator.cache_clear)
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

    def test_retention_strategies(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(
            reverse("ai-retention-strategies"),
            {"member_profile": {"name": "Jamie", "feedback": "Too crowded"}},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIn("Jamie", res.data["strategies"])

    def test_retention_strategies_requires_profile(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(reverse("ai-retention-strategies"), {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_generated_loyalty_offers(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(
            reverse("ai-loyalty-offers"),
            {"target_criteria": "morning yoga regulars"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(len(res.data["offers"]), 3)
        self.assertTrue(all(offer["points"] > 0 for offer in res.data["offers"]))

    def test_sales_email(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(
            reverse("ai-sales-email"),
            {"prompt": "Invite a prospect", "system_instruction": "You are friendly"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIn("[VIRTUAL_TOUR_LINK]", res.data["content"])

    def test_generation_failure_is_500(self):
        broken = mock.Mock()
        broken.sales_email.side_effect = GenerationError("down")
        self.client.force_authenticate(self.staff)
        with mock.patch("assistant.views.get_generator", return_value=broken):
            res = self.client.post(
                reverse("ai-sales-email"),
                {"prompt": "Invite a prospect", "system_instruction": "You are friendly"},
                format="json",
            )
        self.assertEqual(res.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(res.data["detail"], "Failed to generate sales email")

    def test_churn_chat(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(
            reverse("ai-chat"),
            {"message": "Which members need a call?", "context": "dashboard"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIn("dashboard", res.data["response"])
        self.assertIn("Which members need a call?", res.data["response"])

    def test_churn_chat_requires_message(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(reverse("ai-chat"), {"context": "dashboard"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["message"], ["Message is required"])

    def test_churn_chat_failure_is_500(self):
        broken = mock.Mock()
        broken.churn_chat.side_effect = GenerationError("down")
        self.client.force_authenticate(self.staff)
        with mock.patch("assistant.views.get_generator", return_value=broken):
            res = self.client.post(reverse("ai-chat"), {"message": "Hello"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(res.data["detail"], "Failed to process AI chat")

    def test_member_cannot_use_churn_chat(self):
        self.client.force_authenticate(self.member)
        res = self.client.post(reverse("ai-chat"), {"message": "Hello"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_member_cannot_use_staff_tools(self):
        self.client.force_authenticate(self.member)
        res = self.client.post(reverse("ai-loyalty-offers"), {"target_criteria": "x"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_member_workout_plan_is_saved(self):
        self.client.force_authenticate(self.member)
        res = self.client.post(
            reverse("ai-workout-plan"),
            {
                "goals": "Build strength",
                "health_data": {
                    "age": 34,
                    "fitness_level": "intermediate",
                    "exercise_experience": "2 years",
                    "medical_conditions": "Old knee injury",
                },
            },
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        plan = WorkoutPlan.objects.get(pk=res.data["id"])
        self.assertEqual(plan.member, self.member)
        self.assertEqual(plan.title, "Strength & Cardio Building Program")
        self.assertIn("Medical Notes: Old knee injury", plan.goals)
        self.assertEqual(len(plan.weekly_schedule), 4)

        listed = self.client.get(reverse("user-workout-plans"))
        self.assertEqual([item["id"] for item in listed.data], [plan.id])

    def test_workout_plan_requires_health_data(self):
        self.client.force_authenticate(self.member)
        res = self.client.post(reverse("ai-workout-plan"), {"goals": "Run a 10k"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(WorkoutPlan.objects.exists())

    def test_staff_cannot_create_workout_plan(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(reverse("ai-workout-plan"), {"goals": "x"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
