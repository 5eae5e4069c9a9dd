from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from common.throttles import GenerationRateThrottle
from users.permissions import IsMemberRole, IsStaffRole

from .generation import GenerationError, get_generator
from .models import WorkoutPlan
from .serializers import (
    ChurnChatRequestSerializer,
    GeneratedOfferSerializer,
    LoyaltyOffersRequestSerializer,
    RetentionStrategiesRequestSerializer,
    SalesEmailRequestSerializer,
    WorkoutPlanRequestSerializer,
    WorkoutPlanSerializer,
)


def _generation_failed(message):
    return Response({"detail": message}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _describe_goals(goals, health):
    summary = (
        f"{goals} | Health Profile: Age {health['age']}, "
        f"Fitness Level: {health['fitness_level']}, Experience: {health['exercise_experience']}"
    )
    if health.get("medical_conditions"):
        summary += f", Medical Notes: {health['medical_conditions']}"
    return summary


class RetentionStrategiesView(APIView):
    permission_classes = [IsStaffRole]
    throttle_classes = [GenerationRateThrottle]

    def post(self, request):
        serializer = RetentionStrategiesRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            strategies = get_generator().retention_strategies(serializer.validated_data["member_profile"])
        except GenerationError:
            return _generation_failed("Failed to generate retention strategies")
        return Response({"strategies": strategies})


class LoyaltyOffersView(APIView):
    permission_classes = [IsStaffRole]
    throttle_classes = [GenerationRateThrottle]

    def post(self, request):
        serializer = LoyaltyOffersRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            offers = get_generator().loyalty_offers(serializer.validated_data["target_criteria"])
        except GenerationError:
            return _generation_failed("Failed to generate loyalty offers")

        drafts = GeneratedOfferSerializer(data=offers, many=True)
        if not drafts.is_valid():
            return _generation_failed("Failed to generate loyalty offers")
        return Response({"offers": drafts.validated_data})


class SalesEmailView(APIView):
    permission_classes = [IsStaffRole]
    throttle_classes = [GenerationRateThrottle]

    def post(self, request):
        serializer = SalesEmailRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            content = get_generator().sales_email(
                data["prompt"],
                data["system_instruction"],
                data.get("model") or None,
            )
        except GenerationError:
            return _generation_failed("Failed to generate sales email")
        return Response({"content": content})


class ChurnChatView(APIView):
    permission_classes = [IsStaffRole]
    throttle_classes = [GenerationRateThrottle]

    def post(self, request):
        serializer = ChurnChatRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            reply = get_generator().churn_chat(data["message"], data.get("context") or None)
        except GenerationError:
            return _generation_failed("Failed to process AI chat")
        return Response({"response": reply})


class WorkoutPlanView(APIView):
    permission_classes = [IsMemberRole]
    throttle_classes = [GenerationRateThrottle]

    def post(self, request):
        serializer = WorkoutPlanRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        goals = serializer.validated_data["goals"]
        health = serializer.validated_data["health_data"]
        try:
            plan = get_generator().workout_plan(goals, health)
        except GenerationError:
            return _generation_failed("Failed to generate workout plan")

        saved = WorkoutPlan.objects.create(
            member=request.user,
            title=plan.get("planTitle", "Workout Plan"),
            goals=_describe_goals(goals, health),
            weekly_schedule=plan.get("weeklySchedule", []),
        )
        return Response(WorkoutPlanSerializer(saved).data, status=status.HTTP_201_CREATED)


class UserWorkoutPlansView(APIView):
    permission_classes = [IsMemberRole]

    def get(self, request):
        plans = WorkoutPlan.objects.filter(member=request.user)
        return Response(WorkoutPlanSerializer(plans, many=True).data)
