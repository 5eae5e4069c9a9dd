from rest_framework import serializers

from .models import LoyaltyOffer, OfferRedemption


class LoyaltyOfferSerializer(serializers.ModelSerializer):
    class Meta:
        model = LoyaltyOffer
        fields = [
            "id",
            "title",
            "description",
            "points",
            "category",
            "is_active",
            "created_by",
            "created_at",
        ]
        read_only_fields = ["id", "is_active", "created_by", "created_at"]


class OfferRedemptionSerializer(serializers.ModelSerializer):
    offer = LoyaltyOfferSerializer(read_only=True)

    class Meta:
        model = OfferRedemption
        fields = ["id", "member", "offer", "points_spent", "redeemed_at"]
        read_only_fields = fields
