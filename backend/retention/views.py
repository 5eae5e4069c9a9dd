from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from assistant.generation import GenerationError
from users.models import UserRole
from users.permissions import IsStaffRole

from .models import ChurnEmail, ChurnEmailStatus, OutreachAction
from .risk import at_risk_members
from .serializers import (
    AtRiskMemberSerializer,
    ChurnEmailSerializer,
    GenerateChurnEmailSerializer,
    OutreachActionSerializer,
)
from .services import (
    approve_email,
    build_staff_notifications,
    generate_for_member,
    record_outreach,
    reject_email,
    send_email,
    staff_metrics,
)


class AtRiskMembersView(APIView):
    permission_classes = [IsStaffRole]

    def get(self, request):
        return Response(AtRiskMemberSerializer(at_risk_members(), many=True).data)


class ChurnEmailListView(APIView):
    """Approval queue. ``?status=`` picks a state, ``all`` lists everything."""

    permission_classes = [IsStaffRole]

    def get(self, request):
        status_filter = request.query_params.get("status", ChurnEmailStatus.PENDING)
        qs = ChurnEmail.objects.select_related("member")
        if status_filter != "all":
            if status_filter not in ChurnEmailStatus.values:
                return Response({"detail": "Invalid status"}, status=status.HTTP_400_BAD_REQUEST)
            qs = qs.filter(status=status_filter)
        return Response(ChurnEmailSerializer(qs, many=True).data)


class ApproveChurnEmailView(APIView):
    permission_classes = [IsStaffRole]

    def post(self, request, pk):
        email = approve_email(get_object_or_404(ChurnEmail, pk=pk), request.user)
        return Response(ChurnEmailSerializer(email).data)


class RejectChurnEmailView(APIView):
    permission_classes = [IsStaffRole]

    def post(self, request, pk):
        email = reject_email(get_object_or_404(ChurnEmail, pk=pk), request.user)
        return Response(ChurnEmailSerializer(email).data)


class SendChurnEmailView(APIView):
    permission_classes = [IsStaffRole]

    def post(self, request, pk):
        email, result = send_email(get_object_or_404(ChurnEmail.objects.select_related("member"), pk=pk))
        if not result.success:
            return Response(
                {"detail": "Failed to send churn email", "delivery": result.as_dict()},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        data = ChurnEmailSerializer(email).data
        data["delivery"] = result.as_dict()
        return Response(data)


class GenerateChurnEmailView(APIView):
    permission_classes = [IsStaffRole]

    def post(self, request):
        serializer = GenerateChurnEmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            email = generate_for_member(serializer.context["member"])
        except GenerationError:
            return Response(
                {"detail": "Failed to generate churn email"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        if email is None:
            return Response({"detail": "No churn email needed"}, status=status.HTTP_200_OK)
        return Response(ChurnEmailSerializer(email).data, status=status.HTTP_201_CREATED)


class OutreachHistoryView(APIView):
    permission_classes = [IsStaffRole]

    def get(self, request, member_id):
        member = get_object_or_404(get_user_model(), pk=member_id, role=UserRole.MEMBER)
        history = OutreachAction.objects.filter(member=member).select_related("staff")
        return Response(OutreachActionSerializer(history, many=True).data)


class OutreachActionView(APIView):
    permission_classes = [IsStaffRole]

    def post(self, request):
        serializer = OutreachActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        action = record_outreach(
            member=serializer.validated_data["member"],
            staff=request.user,
            action_type=serializer.validated_data["action_type"],
            notes=serializer.validated_data.get("notes", ""),
        )
        return Response(OutreachActionSerializer(action).data, status=status.HTTP_201_CREATED)


class StaffMetricsView(APIView):
    permission_classes = [IsStaffRole]

    def get(self, request):
        return Response(staff_metrics())


class StaffNotificationsView(APIView):
    permission_classes = [IsStaffRole]

    def get(self, request):
        return Response(build_staff_notifications())
