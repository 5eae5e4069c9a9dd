from django.db import DatabaseError
from django.http import HttpResponseRedirect
from loguru import logger
from pydantic import ValidationError
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from common.throttles import TrackingRateThrottle
from users.permissions import IsStaffRole

from .providers import get_email_provider
from .schemas import metadata_from_request
from .serializers import EmailInteractionSerializer, EngagementSummarySerializer, SendEmailSerializer
from .services import send_tracked_email
from .tracking import (
    engagement_summary,
    interaction_by_tracking_id,
    interactions_for_prospect,
    log_link_clicked,
    log_tour_viewed,
)


TRACKING_FAILURES = (DatabaseError, ValidationError)


class SendEmailView(APIView):
    permission_classes = [IsStaffRole]

    def post(self, request):
        serializer = SendEmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = send_tracked_email(
            to_email=data["to"],
            subject=data["subject"],
            content=data["content"],
            to_name=data["prospect_name"],
        )
        if not result.success:
            return Response(
                {"success": False, "error": result.error, "detail": "Failed to send email"},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        return Response(
            {
                "success": True,
                "message_id": result.message_id,
                "tracking_id": result.tracking_id,
                "provider": result.provider,
                "detail": "Email sent successfully",
            }
        )


class EmailStatusView(APIView):
    permission_classes = [IsStaffRole]

    def get(self, request):
        provider = get_email_provider()
        return Response(
            {
                "provider": provider.name,
                "configured": provider.configured,
                "description": provider.description,
            }
        )


class TrackLinkView(APIView):
    """Log the click and always redirect, whether or not the id resolves."""

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [TrackingRateThrottle]

    def get(self, request, tracking_id):
        try:
            clicked = log_link_clicked(tracking_id, metadata_from_request(request))
        except TRACKING_FAILURES:
            logger.opt(exception=True).warning("Click tracking failed for {}", tracking_id)
            clicked = None

        if clicked is None:
            return HttpResponseRedirect("/")
        return HttpResponseRedirect(f"/virtual-tour?track={tracking_id}")


class VirtualTourView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [TrackingRateThrottle]

    def get(self, request, tracking_id):
        try:
            log_tour_viewed(tracking_id, metadata_from_request(request))
        except TRACKING_FAILURES:
            logger.opt(exception=True).warning("Tour view tracking failed for {}", tracking_id)

        interaction = interaction_by_tracking_id(tracking_id)
        if interaction is None:
            return Response(
                {"success": False, "message": "Tracking ID not found"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(
            {
                "success": True,
                "prospect_name": interaction.prospect_name,
                "prospect_email": interaction.prospect_email,
                "tracking_id": tracking_id,
                "message": "Virtual tour tracking recorded",
            }
        )


class ProspectEngagementView(APIView):
    permission_classes = [IsStaffRole]

    def get(self, request, email):
        interactions = interactions_for_prospect(email)
        return Response(
            {
                "summary": EngagementSummarySerializer(engagement_summary(email)).data,
                "interactions": EmailInteractionSerializer(interactions, many=True).data,
            }
        )
