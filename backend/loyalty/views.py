from django.shortcuts import get_object_or_404
from loguru import logger
from rest_framework import mixins, status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from users.permissions import IsMemberRole, IsStaffRole

from .models import LoyaltyOffer, OfferRedemption
from .serializers import LoyaltyOfferSerializer, OfferRedemptionSerializer
from .services import RedemptionError, redeem_offer


class LoyaltyOfferViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    queryset = LoyaltyOffer.objects.filter(is_active=True).order_by("points")
    serializer_class = LoyaltyOfferSerializer

    def get_permissions(self):
        staff_only_actions = {"create", "destroy"}
        if self.action in staff_only_actions:
            permission_classes = [IsStaffRole]
        else:
            permission_classes = [IsAuthenticated]
        return [perm() for perm in permission_classes]

    def perform_create(self, serializer):
        offer = serializer.save(created_by=self.request.user)
        logger.info("Staff {} created loyalty offer {}", self.request.user.pk, offer.pk)

    def destroy(self, request, *args, **kwargs):
        offer = self.get_object()
        offer.deactivate()
        logger.info("Staff {} deactivated loyalty offer {}", request.user.pk, offer.pk)
        return Response({"success": True})


class UserRedemptionsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        redemptions = OfferRedemption.objects.filter(member=request.user).select_related("offer")
        return Response(OfferRedemptionSerializer(redemptions, many=True).data)


class RedeemOfferView(APIView):
    permission_classes = [IsMemberRole]

    def post(self, request, offer_id):
        offer = get_object_or_404(LoyaltyOffer, pk=offer_id, is_active=True)
        try:
            redemption = redeem_offer(request.user, offer)
        except RedemptionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(OfferRedemptionSerializer(redemption).data, status=status.HTTP_201_CREATED)
