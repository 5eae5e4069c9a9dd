from rest_framework import serializers

from .models import WorkoutPlan


class RetentionStrategiesRequestSerializer(serializers.Serializer):
    member_profile = serializers.DictField()


class LoyaltyOffersRequestSerializer(serializers.Serializer):
    target_criteria = serializers.CharField()


class GeneratedOfferSerializer(serializers.Serializer):
    title = serializers.CharField()
    description = serializers.CharField()
    points = serializers.IntegerField(min_value=1)
    category = serializers.CharField()


class SalesEmailRequestSerializer(serializers.Serializer):
    prompt = serializers.CharField()
    system_instruction = serializers.CharField()
    model = serializers.CharField(required=False, allow_blank=True)


class ChurnChatRequestSerializer(serializers.Serializer):
    message = serializers.CharField(
        error_messages={"required": "Message is required", "blank": "Message is required"}
    )
    context = serializers.CharField(required=False, allow_blank=True)


class HealthDataSerializer(serializers.Serializer):
    age = serializers.IntegerField(min_value=13, max_value=100)
    fitness_level = serializers.CharField()
    exercise_experience = serializers.CharField()
    medical_conditions = serializers.CharField(required=False, allow_blank=True)


class WorkoutPlanRequestSerializer(serializers.Serializer):
    goals = serializers.CharField()
    health_data = HealthDataSerializer()


class WorkoutPlanSerializer(serializers.ModelSerializer):
    class Meta:
        model = WorkoutPlan
        fields = ["id", "member", "title", "goals", "weekly_schedule", "created_at"]
        read_only_fields = fields
