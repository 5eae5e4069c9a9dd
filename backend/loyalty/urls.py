from django.urls import path
from rest_framework.routers import SimpleRouter

from .views import LoyaltyOfferViewSet, RedeemOfferView, UserRedemptionsView

router = SimpleRouter(trailing_slash=False)
router.register(r"loyalty-offers", LoyaltyOfferViewSet, basename="loyalty-offers")

urlpatterns = [
    *router.urls,
    path("user/redemptions", UserRedemptionsView.as_view(), name="user-redemptions"),
    path("offers/<int:offer_id>/redeem", RedeemOfferView.as_view(), name="offers-redeem"),
]
