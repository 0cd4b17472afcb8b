"""Integration tests for review endpoints."""

from __future__ import annotations

from datetime import timedelta

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.reviews.models import Review
from apps.staff.models import Staff
from shared.testing import make_booking, make_business, make_customer, make_service


class ReviewAPITests(APITestCase):
    def setUp(self) -> None:
        self.customer = make_customer()
        self.business = make_business()
        self.service = make_service(self.business)
        self.staff = Staff.objects.create(business=self.business, name="Ari", email="ari@example.com")
        self.booking = make_booking(
            self.customer,
            self.service,
            start=timezone.now() - timedelta(days=2),
            status=Booking.Status.COMPLETED,
            staff=self.staff,
        )
        self.list_url = reverse("review-list")

    def _review(self, **extra) -> Review:  # type: ignore
        extra.setdefault("rating", 4)
        return Review.objects.create(user=self.customer, business=self.business, booking=self.booking, **extra)

    def test_customer_reviews_completed_booking(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.post(
            self.list_url, {"booking_id": self.booking.id, "rating": 5, "comment": "Flawless"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        review = Review.objects.get()
        self.assertEqual(review.business, self.business)
        self.assertEqual(review.staff, self.staff)
        self.assertEqual(response.data["staff_name"], "Ari")

    def test_second_review_is_rejected(self) -> None:
        self._review()
        self.client.force_authenticate(self.customer)

        response = self.client.post(self.list_url, {"booking_id": self.booking.id, "rating": 3}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "You have already reviewed this booking")

    def test_upcoming_booking_cannot_be_reviewed(self) -> None:
        upcoming = make_booking(self.customer, self.service)
        self.client.force_authenticate(self.customer)

        response = self.client.post(self.list_url, {"booking_id": upcoming.id, "rating": 5}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "You can only review completed bookings")

    def test_someone_elses_booking_cannot_be_reviewed(self) -> None:
        self.client.force_authenticate(make_customer())

        response = self.client.post(self.list_url, {"booking_id": self.booking.id, "rating": 5}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rating_must_be_between_one_and_five(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.post(self.list_url, {"booking_id": self.booking.id, "rating": 6}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("rating", response.data)

    def test_anonymous_sees_only_approved(self) -> None:
        hidden = self._review(is_approved=False)

        response = self.client.get(self.list_url, {"business": self.business.id})
        self.assertEqual(response.data, [])

        self.client.force_authenticate(self.customer)
        response = self.client.get(self.list_url, {"business": self.business.id})
        self.assertEqual([row["id"] for row in response.data], [hidden.id])

    def test_owner_responds(self) -> None:
        review = self._review()
        self.client.force_authenticate(self.business.owner)

        response = self.client.post(
            reverse("review-respond", args=[review.id]), {"business_response": "Thank you!"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        review.refresh_from_db()
        self.assertEqual(review.business_response, "Thank you!")
        self.assertIsNotNone(review.business_response_at)

    def test_only_owner_can_respond(self) -> None:
        review = self._review()
        self.client.force_authenticate(self.customer)

        response = self.client.post(
            reverse("review-respond", args=[review.id]), {"business_response": "Me too"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["detail"], "Only the business owner can respond to reviews.")
