from django.contrib import admin

from .models import LoyaltyOffer, OfferRedemption


@admin.register(LoyaltyOffer)
class LoyaltyOfferAdmin(admin.ModelAdmin):
    list_display = ("title", "points", "category", "is_active", "created_by")
    search_fields = ("title", "category")
    list_filter = ("is_active", "category")


@admin.register(OfferRedemption)
class OfferRedemptionAdmin(admin.ModelAdmin):
    list_display = ("member", "offer", "points_spent", "redeemed_at")
    search_fields = ("member__email", "offer__title")
    list_filter = ("redeemed_at",)
