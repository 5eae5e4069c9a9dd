from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F
from loguru import logger

from .models import LoyaltyOffer, OfferRedemption


class RedemptionError(Exception):
    """Redemption refused for a reason the member can act on."""


@transaction.atomic
def redeem_offer(member, offer: LoyaltyOffer) -> OfferRedemption:
    # Lock the member row so concurrent redemptions see each other's deductions.
    locked = get_user_model().objects.select_for_update().get(pk=member.pk)

    if locked.loyalty_points < offer.points:
        raise RedemptionError("Insufficient points")
    if OfferRedemption.objects.filter(member=locked, offer=offer).exists():
        raise RedemptionError("Offer already redeemed")

    redemption = OfferRedemption.objects.create(
        member=locked,
        offer=offer,
        points_spent=offer.points,
    )
    type(locked).objects.filter(pk=locked.pk).update(loyalty_points=F("loyalty_points") - offer.points)
    member.refresh_from_db(fields=["loyalty_points"])

    logger.info(
        "Member {} redeemed offer {} for {} points",
        member.pk,
        offer.pk,
        offer.points,
    )
    return redemption
