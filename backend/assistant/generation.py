"""Text generation for retention, loyalty and coaching content.

One generator is chosen per process from configuration: ``GeminiGenerator``
when a Gemini key is configured, otherwise ``MockGenerator`` which returns
deterministic content so the product works without credentials.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any, Protocol

import httpx
from django.conf import settings
from django.utils import timezone
from loguru import logger

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_CHAT_CONTEXT = "general_churn_analysis"


class GenerationError(Exception):
    """The live model failed or returned something unusable."""


@dataclass(frozen=True)
class GeneratedEmail:
    subject: str
    content: str


class TextGenerator(Protocol):
    name: str

    def churn_email(
        self,
        profile: Any,
        risk_level: str,
        current_band: str,
        previous_band: str | None = None,
    ) -> GeneratedEmail:
        ...

    def retention_strategies(self, member_profile: dict) -> str:
        ...

    def loyalty_offers(self, target_criteria: str) -> list[dict]:
        ...

    def workout_plan(self, goals: str, health_data: dict | None = None) -> dict:
        ...

    def sales_email(self, prompt: str, system_instruction: str, model: str | None = None) -> str:
        ...

    def churn_chat(self, message: str, context: str | None = None) -> str:
        ...


def _days_since(moment: datetime | None) -> int | None:
    if moment is None:
        return None
    return (timezone.now() - moment).days


class MockGenerator:
    name = "mock"

    def churn_email(self, profile, risk_level, current_band, previous_band=None):
        first_name = profile.first_name or "there"
        full_name = f"{profile.first_name} {profile.last_name}".strip() or first_name
        membership = profile.membership_type or "ClubPulse"

        if risk_level == "high":
            return GeneratedEmail(
                subject=f"We miss you at ClubPulse, {first_name}! Let's get back on track",
                content=(
                    f"Dear {full_name},\n\n"
                    "We've noticed you haven't visited ClubPulse in a while and we want to make sure "
                    f"everything is alright. As a valued {membership} member, you're important to us!\n\n"
                    "To help you get back into your routine we're offering:\n"
                    "- a FREE personal training session\n"
                    "- priority booking for popular classes\n\n"
                    "See what's new at the club: [HOME_PAGE_LINK]\n\n"
                    "Stay strong,\nThe ClubPulse Team\n\n"
                    "Unsubscribe: [UNSUBSCRIBE_LINK]"
                ),
            )
        if risk_level == "medium":
            return GeneratedEmail(
                subject=f"{first_name}, let's keep your momentum going!",
                content=(
                    f"Hi {full_name},\n\n"
                    "We've noticed a slight change in your visit pattern recently. Life gets busy, "
                    "and our flexible class timetable is designed to fit around it.\n\n"
                    "- try our new 30 minute HIIT classes\n"
                    "- book a complimentary fitness assessment\n"
                    "- 20% off personal training packages this month\n\n"
                    "Plan your next visit: [HOME_PAGE_LINK]\n\n"
                    "Best regards,\nYour ClubPulse Family\n\n"
                    "Unsubscribe: [UNSUBSCRIBE_LINK]"
                ),
            )
        return GeneratedEmail(
            subject=f"New classes and features await you, {first_name}!",
            content=(
                f"Hello {full_name},\n\n"
                "We've added some exciting new classes we think you'll love, including morning "
                "yoga and Saturday nutrition workshops. As a "
                f"{membership} member they are included at no extra cost.\n\n"
                "Take a look: [HOME_PAGE_LINK]\n\n"
                "See you soon!\nThe ClubPulse Team\n\n"
                "Unsubscribe: [UNSUBSCRIBE_LINK]"
            ),
        )

    def retention_strategies(self, member_profile):
        name = member_profile.get("name", "this member")
        feedback = member_profile.get("feedback") or "no recorded concerns"
        return (
            f"# AI Retention Strategies for {name}\n\n"
            "## Personal Outreach Strategy\n"
            f"Call {name} personally to address their concerns ({feedback}). Offer a "
            "complimentary off-peak personal training session.\n\n"
            "## Targeted Incentives\n"
            f"Give {name} a VIP access pass for advance equipment booking and 20% off "
            "personal training packages.\n\n"
            "## Alternative Solutions\n"
            f"Invite {name} on a tour of the quiet zone and the new class timetable."
        )

    def loyalty_offers(self, target_criteria):
        return [
            {
                "title": "Free Yoga Mat",
                "description": "Premium branded yoga mat for dedicated practitioners",
                "points": 400,
                "category": "Wellness",
            },
            {
                "title": "Morning Yoga Package",
                "description": "5 additional morning yoga classes",
                "points": 600,
                "category": "Classes",
            },
            {
                "title": "Meditation Workshop",
                "description": "Mindfulness workshop with a certified instructor",
                "points": 350,
                "category": "Wellness",
            },
        ]

    def workout_plan(self, goals, health_data=None):
        return {
            "planTitle": "Strength & Cardio Building Program",
            "weeklySchedule": [
                {
                    "day": "Monday",
                    "focus": "Upper Body Strength",
                    "description": "Compound movements for upper body strength",
                    "exercises": [
                        "Bench Press - 4 sets x 8-10 reps",
                        "Pull-ups - 3 sets x 6-8 reps",
                        "Shoulder Press - 3 sets x 10-12 reps",
                    ],
                },
                {
                    "day": "Tuesday",
                    "focus": "Cardio & Core",
                    "description": "Cardiovascular fitness and core stability",
                    "exercises": [
                        "Treadmill Run - 30 minutes moderate pace",
                        "Plank - 3 sets x 45 seconds",
                        "Mountain Climbers - 3 sets x 30 seconds",
                    ],
                },
                {
                    "day": "Wednesday",
                    "focus": "Lower Body Strength",
                    "description": "Leg strength and power",
                    "exercises": [
                        "Squats - 4 sets x 10-12 reps",
                        "Deadlifts - 3 sets x 8-10 reps",
                        "Lunges - 3 sets x 12 reps each leg",
                    ],
                },
                {
                    "day": "Thursday",
                    "focus": "Active Recovery",
                    "description": "Light activity and stretching",
                    "exercises": ["20-minute walk", "Full body stretching routine", "Foam rolling"],
                },
            ],
        }

    def sales_email(self, prompt, system_instruction, model=None):
        return (
            "Subject: Discover Your Perfect Fitness Journey at ClubPulse\n\n"
            "Dear [PROSPECT_NAME],\n\n"
            "I'd love to invite you to experience everything ClubPulse has to offer with a "
            "complimentary 7-day trial.\n\n"
            "Take our virtual tour: [VIRTUAL_TOUR_LINK]\n\n"
            "Best regards,\nClubPulse Sales Team"
        )

    def churn_chat(self, message, context=None):
        return (
            f"Churn analysis ({context or DEFAULT_CHAT_CONTEXT})\n\n"
            f"You asked: {message}\n\n"
            "- Members away for more than ten days are the highest churn risk; call them first.\n"
            "- Medium-risk members respond well to class recommendations and a fitness check-in.\n"
            "- Review the approval queue daily so outreach goes out while it is still relevant."
        )


class GeminiGenerator:
    name = "gemini"

    def __init__(self, api_key: str, model: str, timeout: float = 15.0, client: httpx.Client | None = None):
        self.api_key = api_key
        self.model = model
        self._client = client or httpx.Client(timeout=timeout)

    def _generate(
        self,
        prompt: str,
        *,
        system_instruction: str | None = None,
        json_output: bool = False,
        model: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if json_output:
            payload["generationConfig"] = {"responseMimeType": "application/json"}

        try:
            response = self._client.post(
                GEMINI_ENDPOINT.format(model=model or self.model),
                headers={"x-goog-api-key": self.api_key},
                json=payload,
            )
            response.raise_for_status()
            body = response.json()
            return body["candidates"][0]["content"]["parts"][0]["text"]
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as exc:
            logger.error("Gemini generation failed: {}", exc)
            raise GenerationError("Text generation failed") from exc

    def _generate_json(self, prompt: str) -> Any:
        text = self._generate(prompt, json_output=True)
        try:
            return json.loads(text)
        except ValueError as exc:
            raise GenerationError("Model returned invalid JSON") from exc

    def churn_email(self, profile, risk_level, current_band, previous_band=None):
        days = _days_since(profile.last_visit)
        last_visit = f"{days} days ago" if days is not None else "Never visited"
        band_change = (
            f"Moving from {previous_band} to {current_band}"
            if previous_band
            else f"Currently in {current_band} band"
        )
        prompt = (
            "Write a warm, encouraging churn prevention email for a UK fitness club called "
            "ClubPulse. It must not feel pushy.\n\n"
            f"Member: {profile.first_name} {profile.last_name}\n"
            f"Membership type: {profile.membership_type}\n"
            f"Member since: {profile.join_date}\n"
            f"Last visit: {last_visit}\n"
            f"Risk level: {risk_level}\n"
            f"Risk band: {band_change}\n\n"
            "High risk gets a strong comeback offer, medium a motivational check-in, low "
            "news about new classes. Use UK English. Include the literal tokens "
            "[HOME_PAGE_LINK] and [UNSUBSCRIBE_LINK] where links belong.\n\n"
            'Return JSON: {"subject": "...", "content": "..."}'
        )
        text = self._generate(prompt)
        return self._parse_email(text, profile.first_name)

    @staticmethod
    def _parse_email(text: str, first_name: str) -> GeneratedEmail:
        try:
            data = json.loads(text)
            return GeneratedEmail(subject=data["subject"], content=data["content"])
        except (ValueError, KeyError, TypeError):
            pass

        lines = text.splitlines()
        subject_line = next((line for line in lines if line.lower().startswith("subject:")), None)
        subject = (
            subject_line.split(":", 1)[1].strip()
            if subject_line
            else f"We miss you at ClubPulse, {first_name}!"
        )
        content_start = next(
            (index for index, line in enumerate(lines) if line.lower().startswith("content:")),
            None,
        )
        content = "\n".join(lines[content_start + 1:]).strip() if content_start is not None else text
        return GeneratedEmail(subject=subject, content=content)

    def retention_strategies(self, member_profile):
        prompt = (
            "You are a retention specialist for a premium fitness club. Generate 3 distinct, "
            "personalised retention strategies in markdown for this member:\n"
            + "\n".join(f"- {key}: {value}" for key, value in member_profile.items())
        )
        return self._generate(prompt)

    def loyalty_offers(self, target_criteria):
        prompt = (
            "You are a loyalty programme manager for a premium fitness club. Generate 3 loyalty "
            f"offers for this member segment: {target_criteria}. Each offer has title, "
            "description, points (100-1000) and category. Return a JSON object with an "
            '"offers" array.'
        )
        data = self._generate_json(prompt)
        offers = data.get("offers") if isinstance(data, dict) else None
        if not isinstance(offers, list):
            raise GenerationError("Model returned no offers")
        return offers

    def workout_plan(self, goals, health_data=None):
        health = ""
        if health_data:
            health = (
                f"\nAge: {health_data.get('age')}\n"
                f"Fitness level: {health_data.get('fitness_level')}\n"
                f"Experience: {health_data.get('exercise_experience')}\n"
                f"Medical notes: {health_data.get('medical_conditions') or 'None reported'}"
            )
        prompt = (
            "You are an expert personal trainer. Create a safe, personalised weekly workout plan.\n"
            f"Goals: {goals}{health}\n\n"
            'Return JSON: {"planTitle": "...", "weeklySchedule": [{"day": "...", "focus": "...", '
            '"description": "...", "exercises": ["..."]}]}'
        )
        data = self._generate_json(prompt)
        if not isinstance(data, dict) or "weeklySchedule" not in data:
            raise GenerationError("Model returned no weekly schedule")
        return data

    def sales_email(self, prompt, system_instruction, model=None):
        return self._generate(prompt, system_instruction=system_instruction, model=model)

    def churn_chat(self, message, context=None):
        system_instruction = (
            "You are a Customer Churn Analysis AI assistant for a premium health and wellness "
            "club. Help staff with customer retention insights, churn prevention strategies, "
            "data analysis and actionable recommendations. Be professional, data-driven and "
            "specific.\n"
            f"Context: {context or DEFAULT_CHAT_CONTEXT}"
        )
        return self._generate(message, system_instruction=system_instruction)


def build_generator() -> TextGenerator:
    api_key = getattr(settings, "GEMINI_API_KEY", None)
    if api_key:
        return GeminiGenerator(
            api_key=api_key,
            model=settings.GEMINI_MODEL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    return MockGenerator()


@lru_cache(maxsize=1)
def get_generator() -> TextGenerator:
    generator = build_generator()
    logger.info("Text generator selected: {}", generator.name)
    return generator
