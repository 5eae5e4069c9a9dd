import io
import uuid

import qrcode
from django.contrib.auth import authenticate, login, logout
from django.http import HttpResponse
from loguru import logger
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.throttles import ScanRateThrottle

from .models import User, UserRole
from .permissions import IsMemberRole, IsStaffRole
from .serializers import LoginSerializer, UserSerializer
from .services import build_member_notifications


def _parse_public_id(value):
    if not value:
        return None, Response({"detail": "public_id is required"}, status=status.HTTP_400_BAD_REQUEST)
    try:
        return uuid.UUID(str(value)), None
    except (ValueError, TypeError):
        return None, Response({"detail": "Invalid public_id"}, status=status.HTTP_400_BAD_REQUEST)


class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data["email"]

        account = User.objects.filter(email__iexact=email).first()
        if account is None:
            return Response({"detail": "User not found"}, status=status.HTTP_404_NOT_FOUND)

        user = authenticate(
            request,
            username=account.get_username(),
            password=serializer.validated_data["password"],
        )
        if user is None:
            return Response({"detail": "Invalid credentials"}, status=status.HTTP_401_UNAUTHORIZED)

        login(request, user)
        logger.info("User {} logged in as {}", user.pk, user.role)
        return Response(UserSerializer(user).data)


class LogoutView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        logout(request)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CurrentUserView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data)


class MemberNotificationsView(APIView):
    permission_classes = [IsMemberRole]

    def get(self, request):
        return Response(build_member_notifications(request.user))


class MemberCardQrView(APIView):
    permission_classes = [IsMemberRole]

    def get(self, request):
        img = qrcode.make(str(request.user.public_id))
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return HttpResponse(buffer.getvalue(), content_type="image/png")


class CheckInView(APIView):
    permission_classes = [IsStaffRole]
    throttle_classes = [ScanRateThrottle]

    def post(self, request):
        public_uuid, error_response = _parse_public_id(request.data.get("public_id"))
        if error_response:
            return error_response

        member = User.objects.filter(public_id=public_uuid, role=UserRole.MEMBER).first()
        if member is None:
            return Response({"detail": "Member not found"}, status=status.HTTP_404_NOT_FOUND)

        member.record_visit()
        logger.info("Member {} checked in by staff {}", member.pk, request.user.pk)
        return Response(UserSerializer(member).data)
