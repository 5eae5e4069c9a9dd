from rest_framework import serializers

from .models import EmailInteraction


class SendEmailSerializer(serializers.Serializer):
    to = serializers.EmailField(error_messages={"invalid": "Invalid email address format"})
    subject = serializers.CharField(max_length=255)
    content = serializers.CharField()
    prospect_name = serializers.CharField(max_length=255)


class EmailInteractionSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmailInteraction
        fields = [
            "id",
            "prospect_email",
            "prospect_name",
            "interaction_type",
            "email_subject",
            "tracking_id",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields


class EngagementSummarySerializer(serializers.Serializer):
    email = serializers.EmailField()
    emails_sent = serializers.IntegerField()
    links_clicked = serializers.IntegerField()
    tours_viewed = serializers.IntegerField()
    total_interactions = serializers.IntegerField()
    last_interaction_at = serializers.DateTimeField(allow_null=True)
