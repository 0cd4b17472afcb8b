"""API tests for promotion management, validation and redemption."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.promotions.models import Promotion, PromotionUsage
from shared.testing import make_booking, make_business, make_customer, make_service


class PromotionAPITests(APITestCase):
    def setUp(self) -> None:
        self.business = make_business()
        self.service = make_service(self.business)
        self.client.force_authenticate(self.business.owner)
        now = timezone.now()
        self.window = {
            "start_date": (now - timedelta(hours=1)).isoformat(),
            "end_date": (now + timedelta(days=14)).isoformat(),
        }

    def _create(self, **overrides):  # type: ignore
        payload = {"name": "Welcome", "code": "welcome10", "type": "PERCENTAGE", "value": "10", **self.window}
        payload.update(overrides)
        return self.client.post(reverse("promotion-list"), payload, format="json")

    def test_owner_creates_promotion_with_uppercase_code(self) -> None:
        response = self._create(scope="SPECIFIC_SERVICES", service_ids=[self.service.id])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["code"], "WELCOME10")
        self.assertEqual(response.data["service_ids"], [self.service.id])

    def test_duplicate_code_is_rejected(self) -> None:
        self._create()

        response = self._create(code="Welcome10")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], ["Promo code already exists"])

    def test_percentage_must_be_in_range(self) -> None:
        response = self._create(value="150")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["value"], ["Percentage value must be between 1 and 100"])

    def test_end_must_follow_start(self) -> None:
        response = self._create(start_date=self.window["end_date"], end_date=self.window["start_date"])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["end_date"], ["End date must be after start date"])

    def test_foreign_services_are_rejected(self) -> None:
        foreign = make_service(make_business())

        response = self._create(service_ids=[foreign.id])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("service_ids", response.data)

    def test_list_is_scoped_to_owner(self) -> None:
        self._create()
        other = make_business()
        Promotion.objects.create(
            business=other,
            name="Theirs",
            type=Promotion.Type.FIXED_AMOUNT,
            value=Decimal("5"),
            start_date=timezone.now(),
            end_date=timezone.now() + timedelta(days=1),
        )

        response = self.client.get(reverse("promotion-list"))

        self.assertEqual([row["name"] for row in response.data], ["Welcome"])


class PromotionRedemptionAPITests(APITestCase):
    def setUp(self) -> None:
        self.business = make_business()
        self.service = make_service(self.business)
        self.customer = make_customer()
        now = timezone.now()
        self.promotion = Promotion.objects.create(
            business=self.business,
            name="Ten off",
            code="TENOFF",
            type=Promotion.Type.FIXED_AMOUNT,
            value=Decimal("10"),
            per_customer_limit=1,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=7),
        )
        self.client.force_authenticate(self.customer)

    def _validate(self, **overrides):  # type: ignore
        payload = {"code": "tenoff", "business_id": self.business.id, "subtotal": "100.00", "service_ids": [self.service.id]}
        payload.update(overrides)
        return self.client.post(reverse("promotion-validate"), payload, format="json")

    def test_validate_returns_discount(self) -> None:
        response = self._validate()

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertTrue(response.data["valid"])
        self.assertEqual(response.data["discount_amount"], "10.00")
        self.assertEqual(response.data["final_amount"], "90.00")
        self.assertEqual(response.data["promotion"]["code"], "TENOFF")

    def test_validate_unknown_code(self) -> None:
        response = self._validate(code="MISSING")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {"valid": False, "detail": "Invalid promo code"})

    def test_validate_requires_login(self) -> None:
        self.client.force_authenticate(None)

        response = self._validate()

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_use_on_booking_then_limit(self) -> None:
        booking = make_booking(self.customer, self.service)

        first = self.client.post(
            reverse("promotion-use"), {"promotion_id": self.promotion.id, "booking_id": booking.id}, format="json"
        )
        second = self.client.post(
            reverse("promotion-use"), {"promotion_id": self.promotion.id, "booking_id": booking.id}, format="json"
        )

        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)
        self.assertEqual(first.data["discount_amount"], "10.00")
        self.assertEqual(second.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(second.data["detail"], "You have already used this promotion")
        self.promotion.refresh_from_db()
        self.assertEqual(self.promotion.usage_count, 1)
        self.assertEqual(PromotionUsage.objects.get().booking, booking)

    def test_use_requires_target(self) -> None:
        response = self.client.post(reverse("promotion-use"), {"promotion_id": self.promotion.id}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_use_on_someone_elses_booking(self) -> None:
        booking = make_booking(make_customer(), self.service)

        response = self.client.post(
            reverse("promotion-use"), {"promotion_id": self.promotion.id, "booking_id": booking.id}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
