from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from common.models import TimeStampedModel


class LoyaltyOffer(TimeStampedModel):
    title = models.CharField(max_length=255)
    description = models.TextField()
    points = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    category = models.CharField(max_length=100)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_offers",
    )

    class Meta:
        ordering = ["points"]

    def __str__(self) -> str:
        return f"{self.title} ({self.points} pts)"

    def deactivate(self) -> None:
        if self.is_active:
            self.is_active = False
            self.save(update_fields=["is_active", "updated_at"])


class OfferRedemption(models.Model):
    member = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="redemptions",
    )
    offer = models.ForeignKey(LoyaltyOffer, on_delete=models.PROTECT, related_name="redemptions")
    points_spent = models.PositiveIntegerField()
    redeemed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-redeemed_at"]
        constraints = [
            models.UniqueConstraint(fields=["member", "offer"], name="unique_redemption_per_member_offer"),
        ]

    def __str__(self) -> str:
        return f"{self.member} -> {self.offer.title}"
