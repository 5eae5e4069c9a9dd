from django.contrib.auth import get_user_model
from rest_framework import serializers

from users.models import UserRole

from .models import ChurnEmail, OutreachAction, OutreachActionType
from .risk import classify


class AtRiskMemberSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    risk_level = serializers.SerializerMethodField()
    risk_band = serializers.SerializerMethodField()
    risk_percentage = serializers.SerializerMethodField()
    days_since_visit = serializers.SerializerMethodField()

    class Meta:
        model = get_user_model()
        fields = [
            "id",
            "email",
            "first_name",
            "last_name",
            "full_name",
            "membership_type",
            "loyalty_points",
            "join_date",
            "last_visit",
            "risk_level",
            "risk_band",
            "risk_percentage",
            "days_since_visit",
        ]
        read_only_fields = fields

    def _assessment(self, obj):
        cache = self.context.setdefault("assessments", {})
        if obj.pk not in cache:
            cache[obj.pk] = classify(obj.last_visit)
        return cache[obj.pk]

    def get_risk_level(self, obj):
        return self._assessment(obj).level

    def get_risk_band(self, obj):
        return self._assessment(obj).band

    def get_risk_percentage(self, obj):
        return self._assessment(obj).percentage

    def get_days_since_visit(self, obj):
        return self._assessment(obj).days_since_visit


class ChurnEmailSerializer(serializers.ModelSerializer):
    member_name = serializers.CharField(source="member.full_name", read_only=True)
    member_email = serializers.EmailField(source="member.email", read_only=True)

    class Meta:
        model = ChurnEmail
        fields = [
            "id",
            "member",
            "member_name",
            "member_email",
            "staff",
            "subject",
            "content",
            "risk_level",
            "current_risk_band",
            "previous_risk_band",
            "member_profile",
            "status",
            "approved_by",
            "approved_at",
            "sent_at",
            "tracking_id",
            "created_at",
        ]
        read_only_fields = fields


class GenerateChurnEmailSerializer(serializers.Serializer):
    member_id = serializers.IntegerField()

    def validate_member_id(self, value):
        member = get_user_model().objects.filter(pk=value, role=UserRole.MEMBER).first()
        if member is None:
            raise serializers.ValidationError("Member not found")
        self.context["member"] = member
        return value


class OutreachActionSerializer(serializers.ModelSerializer):
    action_type = serializers.ChoiceField(choices=OutreachActionType.choices)

    class Meta:
        model = OutreachAction
        fields = ["id", "member", "staff", "action_type", "notes", "created_at"]
        read_only_fields = ["id", "staff", "created_at"]

    def validate_member(self, value):
        if value.role != UserRole.MEMBER:
            raise serializers.ValidationError("Outreach can only be logged for members")
        return value
