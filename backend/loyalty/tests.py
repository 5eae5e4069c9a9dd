from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from users.models import UserRole

from .models import LoyaltyOffer, OfferRedemption
from .services import RedemptionError, redeem_offer


class RedeemOfferServiceTests(TestCase):
    def setUp(self):
        self.member = get_user_model().objects.create_user(
            username="member",
            email="member@example.com",
            password="pass1234",
            role=UserRole.MEMBER,
        )
        self.offer = LoyaltyOffer.objects.create(
            title="Protein Shake",
            description="Any shake from the juice bar",
            points=200,
            category="Nutrition",
        )

    def test_redeem_deducts_points_and_records_redemption(self):
        redemption = redeem_offer(self.member, self.offer)

        self.assertEqual(self.member.loyalty_points, 1050)
        self.member.refresh_from_db()
        self.assertEqual(self.member.loyalty_points, 1050)
        self.assertEqual(redemption.points_spent, 200)
        self.assertEqual(OfferRedemption.objects.filter(member=self.member).count(), 1)

    def test_insufficient_points_leaves_balance_untouched(self):
        expensive = LoyaltyOffer.objects.create(
            title="Annual Pass",
            description="Twelve months free",
            points=5000,
            category="Membership",
        )
        with self.assertRaisesMessage(RedemptionError, "Insufficient points"):
            redeem_offer(self.member, expensive)

        self.member.refresh_from_db()
        self.assertEqual(self.member.loyalty_points, 1250)
        self.assertFalse(OfferRedemption.objects.filter(member=self.member).exists())

    def test_exact_balance_can_be_spent(self):
        self.member.loyalty_points = 200
        self.member.save(update_fields=["loyalty_points"])

        redeem_offer(self.member, self.offer)
        self.member.refresh_from_db()
        self.assertEqual(self.member.loyalty_points, 0)

    def test_offer_can_only_be_redeemed_once(self):
        redeem_offer(self.member, self.offer)
        with self.assertRaisesMessage(RedemptionError, "Offer already redeemed"):
            redeem_offer(self.member, self.offer)

        self.member.refresh_from_db()
        self.assertEqual(self.member.loyalty_points, 1050)


class LoyaltyApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        User = get_user_model()
        self.member = User.objects.create_user(
            username="member",
            email="member@example.com",
            password="pass1234",
            role=UserRole.MEMBER,
        )
        self.staff = User.objects.create_user(
            username="staff",
            email="staff@example.com",
            password="pass1234",
            role=UserRole.STAFF,
        )
        self.offer = LoyaltyOffer.objects.create(
            title="Guest Pass",
            description="Bring a friend for a day",
            points=200,
            category="Access",
        )

    def test_member_redeems_offer(self):
        self.client.force_authenticate(self.member)
        res = self.client.post(reverse("offers-redeem", args=[self.offer.id]))
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["points_spent"], 200)
        self.assertEqual(res.data["offer"]["id"], self.offer.id)

        self.member.refresh_from_db()
        self.assertEqual(self.member.loyalty_points, 1050)

        history = self.client.get(reverse("user-redemptions"))
        self.assertEqual(history.status_code, status.HTTP_200_OK)
        self.assertEqual(len(history.data), 1)

    def test_insufficient_points_is_400(self):
        self.member.loyalty_points = 50
        self.member.save(update_fields=["loyalty_points"])
        self.client.force_authenticate(self.member)

        res = self.client.post(reverse("offers-redeem", args=[self.offer.id]))
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["detail"], "Insufficient points")
        self.member.refresh_from_db()
        self.assertEqual(self.member.loyalty_points, 50)

    def test_staff_cannot_redeem(self):
        self.client.force_authenticate(self.staff)
        res = self.client.post(reverse("offers-redeem", args=[self.offer.id]))
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_inactive_offer_is_404(self):
        self.offer.deactivate()
        self.client.force_authenticate(self.member)
        res = self.client.post(reverse("offers-redeem", args=[self.offer.id]))
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_offers_listed_by_points(self):
        self.client.force_authenticate(self.member)
        res = self.client.get(reverse("loyalty-offers-list"))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        points = [item["points"] for item in res.data]
        self.assertEqual(points, sorted(points))
        self.assertIn(self.offer.id, [item["id"] for item in res.data])

    def test_staff_creates_offer(self):
        self.client.force_authenticate(self.staff)
        payload = {
            "title": "Sauna Session",
            "description": "One hour in the spa",
            "points": 300,
            "category": "Wellness",
        }
        res = self.client.post(reverse("loyalty-offers-list"), payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        offer = LoyaltyOffer.objects.get(pk=res.data["id"])
        self.assertEqual(offer.created_by, self.staff)
        self.assertTrue(offer.is_active)

    def test_offer_points_must_be_positive(self):
        self.client.force_authenticate(self.staff)
        payload = {"title": "Free", "description": "Nothing", "points": 0, "category": "Misc"}
        res = self.client.post(reverse("loyalty-offers-list"), payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_member_cannot_create_offer(self):
        self.client.force_authenticate(self.member)
        payload = {"title": "Mine", "description": "Mine", "points": 10, "category": "Misc"}
        res = self.client.post(reverse("loyalty-offers-list"), payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_deactivates_offer(self):
        self.client.force_authenticate(self.staff)
        res = self.client.delete(reverse("loyalty-offers-detail", args=[self.offer.id]))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data, {"success": True})

        self.offer.refresh_from_db()
        self.assertFalse(self.offer.is_active)
        listed = self.client.get(reverse("loyalty-offers-list"))
        self.assertNotIn(self.offer.id, [item["id"] for item in listed.data])
