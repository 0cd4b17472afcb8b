"""Integration tests for booking API endpoints."""

from __future__ import annotations

from datetime import time, timedelta
from types import SimpleNamespace
from unittest import mock

import stripe
from django.core import mail
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.bookings.tasks import (
    complete_finished_bookings,
    expire_unpaid_bookings,
    send_upcoming_booking_reminders,
)
from apps.businesses.models import TimeOff
from apps.customers.models import CustomerProfile
from apps.notifications.models import Notification
from shared.testing import local_dt, make_booking, make_business, make_customer, make_service, open_every_day


def _intent(**extra):  # type: ignore
    fields = {"id": "pi_test_123", "client_secret": "pi_test_123_secret_abc"}
    fields.update(extra)
    return SimpleNamespace(**fields)


@mock.patch("stripe.Customer.create", return_value=SimpleNamespace(id="cus_test_1"))
@mock.patch("stripe.PaymentIntent.create", return_value=_intent())
class BookingCreateAPITests(APITestCase):
    """Covers creation, payment intents and slot conflicts."""

    def setUp(self) -> None:
        self.customer = make_customer()
        self.business = make_business()
        self.service = make_service(self.business)
        open_every_day(self.business)
        self.day = timezone.localdate() + timedelta(days=5)
        self.client.force_authenticate(self.customer)
        self.list_url = reverse("booking-list")

    def _payload(self, at: str = "10:00") -> dict[str, object]:
        return {
            "business_id": self.business.id,
            "service_id": self.service.id,
            "date": self.day.isoformat(),
            "time": at,
            "notes": "First visit",
        }

    def test_customer_can_create_booking(self, intent_create, customer_create) -> None:
        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["client_secret"], "pi_test_123_secret_abc")
        self.assertEqual(response.data["amount"], "100.00")
        self.assertEqual(response.data["fees"], {"platform": "15.00", "stripe": "3.20", "business": "81.80"})

        booking = Booking.objects.get(pk=response.data["booking_id"])
        self.assertEqual(booking.status, Booking.Status.PENDING)
        self.assertEqual(booking.payment_status, Booking.PaymentStatus.PENDING)
        self.assertEqual(booking.stripe_payment_intent_id, "pi_test_123")
        self.assertEqual(booking.end_time - booking.start_time, timedelta(minutes=60))

        kwargs = intent_create.call_args.kwargs
        self.assertEqual(kwargs["amount"], 10000)
        self.assertEqual(kwargs["application_fee_amount"], 1500)
        self.assertEqual(kwargs["transfer_data"], {"destination": self.business.stripe_account_id})
        self.assertEqual(kwargs["metadata"]["type"], "booking")
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.stripe_customer_id, "cus_test_1")

    def test_overlapping_slot_is_rejected(self, intent_create, customer_create) -> None:
        first = self.client.post(self.list_url, self._payload("10:00"), format="json")
        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)

        overlap = self.client.post(self.list_url, self._payload("10:30"), format="json")

        self.assertEqual(overlap.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(overlap.data["non_field_errors"], ["This time slot is no longer available"])
        self.assertEqual(Booking.objects.count(), 1)

    def test_back_to_back_slots_do_not_conflict(self, intent_create, customer_create) -> None:
        self.client.post(self.list_url, self._payload("10:00"), format="json")

        response = self.client.post(self.list_url, self._payload("11:00"), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)

    def test_cancelled_booking_releases_slot(self, intent_create, customer_create) -> None:
        make_booking(
            make_customer(),
            self.service,
            start=local_dt(self.day, time(10, 0)),
            status=Booking.Status.CANCELLED,
        )

        response = self.client.post(self.list_url, self._payload("10:00"), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)

    def test_business_without_payments_is_rejected(self, intent_create, customer_create) -> None:
        self.business.stripe_onboarded = False
        self.business.save(update_fields=["stripe_onboarded"])

        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Business is not set up to accept payments")
        intent_create.assert_not_called()

    def test_past_time_is_rejected(self, intent_create, customer_create) -> None:
        self.day = timezone.localdate() - timedelta(days=1)

        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Booking time must be in the future")

    def test_unknown_service_is_rejected(self, intent_create, customer_create) -> None:
        payload = self._payload()
        payload["service_id"] = make_service(make_business()).id

        response = self.client.post(self.list_url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Service not found")

    def test_gateway_failure_returns_bad_gateway(self, intent_create, customer_create) -> None:
        intent_create.side_effect = stripe.InvalidRequestError("No such destination", param="destination")

        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(Booking.objects.count(), 0)

    def test_slot_is_held_before_payment_intent_is_opened(self, intent_create, customer_create) -> None:
        held = []

        def create_intent(**params):  # type: ignore
            held.extend(Booking.objects.filter(status=Booking.Status.PENDING, stripe_payment_intent_id=""))
            return _intent()

        intent_create.side_effect = create_intent

        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual([booking.id for booking in held], [response.data["booking_id"]])
        self.assertEqual(intent_create.call_args.kwargs["metadata"]["booking_id"], str(response.data["booking_id"]))

    @mock.patch("time.sleep")
    def test_transient_stripe_errors_are_retried(self, sleep, intent_create, customer_create) -> None:
        intent_create.side_effect = [
            stripe.APIConnectionError("Connection reset"),
            stripe.RateLimitError("Too many requests"),
            _intent(),
        ]

        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(intent_create.call_count, 3)
        self.assertEqual(sleep.call_count, 2)

    @mock.patch("time.sleep")
    def test_retries_give_up_after_three_attempts(self, sleep, intent_create, customer_create) -> None:
        intent_create.side_effect = stripe.APIConnectionError("Connection reset")

        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(intent_create.call_count, 3)
        self.assertEqual(Booking.objects.count(), 0)

    def test_business_owner_cannot_book(self, intent_create, customer_create) -> None:
        self.client.force_authenticate(self.business.owner)

        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(Booking.objects.count(), 0)
        intent_create.assert_not_called()

    def test_anonymous_cannot_book(self, intent_create, customer_create) -> None:
        self.client.force_authenticate(None)

        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class BookingAvailabilityAPITests(APITestCase):
    def setUp(self) -> None:
        self.business = make_business()
        self.service = make_service(self.business, duration=90)
        open_every_day(self.business)
        self.day = timezone.localdate() + timedelta(days=4)
        self.url = reverse("booking-availability")

    def _get(self, **params):  # type: ignore
        query = {"business_id": self.business.id, "date": self.day.isoformat()}
        query.update(params)
        return self.client.get(self.url, query)

    def test_lists_taken_start_times(self) -> None:
        make_booking(make_customer(), self.service, start=local_dt(self.day, time(11, 0)))
        make_booking(
            make_customer(),
            self.service,
            start=local_dt(self.day, time(14, 0)),
            status=Booking.Status.CANCELLED,
        )

        response = self._get(service_id=self.service.id)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["is_closed_day"])
        self.assertEqual(response.data["booked_slots"], ["11:00"])
        self.assertEqual(response.data["availability"], {"start_time": "09:00", "end_time": "18:00"})
        self.assertEqual(response.data["service_duration"], 90)

    def test_partial_time_off_blocks_slots(self) -> None:
        TimeOff.objects.create(business=self.business, date=self.day, start_time=time(13, 0), end_time=time(14, 0))

        response = self._get()

        self.assertEqual(response.data["booked_slots"], ["13:00", "13:30"])

    def test_full_day_time_off_closes_day(self) -> None:
        TimeOff.objects.create(business=self.business, date=self.day, reason="Staff training")

        response = self._get()

        self.assertTrue(response.data["is_closed_day"])
        self.assertEqual(response.data["reason"], "Staff training")
        self.assertEqual(response.data["booked_slots"], [])

    def test_day_without_hours_is_closed(self) -> None:
        self.business.availability.all().delete()

        response = self._get()

        self.assertTrue(response.data["is_closed_day"])
        self.assertEqual(response.data["reason"], "Business is closed on this day")


class BookingLifecycleAPITests(APITestCase):
    """Listing, cancellation, refunds and completion."""

    def setUp(self) -> None:
        self.customer = make_customer()
        self.business = make_business()
        self.owner = self.business.owner
        self.service = make_service(self.business)
        self.booking = make_booking(self.customer, self.service, stripe_payment_intent_id="pi_paid_1")

    def test_customer_sees_only_own_bookings(self) -> None:
        make_booking(make_customer(), self.service, start=self.booking.start_time + timedelta(hours=2))
        self.client.force_authenticate(self.customer)

        response = self.client.get(reverse("booking-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [row["id"] for row in response.data]
        self.assertEqual(ids, [self.booking.id])

    def test_owner_filters_bookings_by_status(self) -> None:
        make_booking(
            make_customer(),
            self.service,
            start=self.booking.start_time + timedelta(hours=2),
            status=Booking.Status.CANCELLED,
        )
        self.client.force_authenticate(self.owner)

        response = self.client.get(reverse("booking-list"), {"status": "cancelled"})

        rows = response.data
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["status"], Booking.Status.CANCELLED)

    def test_stranger_cannot_view_booking(self) -> None:
        self.client.force_authenticate(make_customer())

        response = self.client.get(reverse("booking-detail", args=[self.booking.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_customer_cancels_paid_booking(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.post(
            reverse("booking-cancel", args=[self.booking.id]), {"reason": "Running late"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["message"], "Booking cancelled. Please request a refund if applicable.")
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CANCELLED)
        self.assertIn("Cancellation reason: Running late", self.booking.notes)
        self.assertIsNotNone(self.booking.cancelled_at)
        self.assertEqual(len(mail.outbox), 1)
        self.assertTrue(Notification.objects.filter(user=self.owner, title="Booking cancelled").exists())

    def test_customer_cannot_cancel_inside_window(self) -> None:
        soon = make_booking(self.customer, self.service, start=timezone.now() + timedelta(hours=3))
        self.client.force_authenticate(self.customer)

        response = self.client.post(reverse("booking-cancel", args=[soon.id]), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Bookings must be cancelled at least 24 hours in advance")

    def test_owner_can_cancel_inside_window(self) -> None:
        soon = make_booking(self.customer, self.service, start=timezone.now() + timedelta(hours=3))
        self.client.force_authenticate(self.owner)

        response = self.client.post(reverse("booking-cancel", args=[soon.id]), format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["message"], "Booking cancelled successfully.")

    def test_cancel_twice_is_rejected(self) -> None:
        self.booking.status = Booking.Status.CANCELLED
        self.booking.save(update_fields=["status"])
        self.client.force_authenticate(self.customer)

        response = self.client.post(reverse("booking-cancel", args=[self.booking.id]), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Booking is already cancelled")

    @mock.patch("stripe.Refund.create", return_value=SimpleNamespace(id="re_test_1"))
    def test_refund_cancels_and_marks_refunded(self, refund_create) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.post(reverse("booking-refund", args=[self.booking.id]), format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["refund_id"], "re_test_1")
        self.assertEqual(response.data["payment_status"], Booking.PaymentStatus.REFUNDED)
        self.assertEqual(response.data["status"], Booking.Status.CANCELLED)
        refund_create.assert_called_once_with(payment_intent="pi_paid_1", reason="requested_by_customer")
        self.assertTrue(Notification.objects.filter(user=self.customer, title="Refund processed").exists())

    @mock.patch("stripe.Refund.create", return_value=SimpleNamespace(id="re_test_2"))
    def test_customer_cannot_refund_inside_window(self, refund_create) -> None:
        soon = make_booking(
            self.customer, self.service, start=timezone.now() + timedelta(hours=3), stripe_payment_intent_id="pi_soon"
        )
        self.client.force_authenticate(self.customer)

        response = self.client.post(reverse("booking-refund", args=[soon.id]), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Refunds must be requested at least 24 hours in advance")
        refund_create.assert_not_called()
        soon.refresh_from_db()
        self.assertEqual(soon.payment_status, Booking.PaymentStatus.SUCCEEDED)

    @mock.patch("stripe.Refund.create", return_value=SimpleNamespace(id="re_test_3"))
    def test_owner_can_refund_inside_window(self, refund_create) -> None:
        soon = make_booking(
            self.customer, self.service, start=timezone.now() + timedelta(hours=3), stripe_payment_intent_id="pi_soon"
        )
        self.client.force_authenticate(self.owner)

        response = self.client.post(reverse("booking-refund", args=[soon.id]), format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["payment_status"], Booking.PaymentStatus.REFUNDED)
        refund_create.assert_called_once_with(payment_intent="pi_soon", reason="requested_by_customer")

    def test_refund_requires_successful_payment(self) -> None:
        self.booking.payment_status = Booking.PaymentStatus.PENDING
        self.booking.save(update_fields=["payment_status"])
        self.client.force_authenticate(self.customer)

        response = self.client.post(reverse("booking-refund", args=[self.booking.id]), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Booking has not been paid or is already refunded")

    def test_owner_completes_confirmed_booking(self) -> None:
        self.client.force_authenticate(self.owner)

        response = self.client.post(reverse("booking-complete", args=[self.booking.id]), format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], Booking.Status.COMPLETED)
        profile = CustomerProfile.objects.get(business=self.business, user=self.customer)
        self.assertEqual(profile.total_visits, 1)

    def test_customer_cannot_complete(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.post(reverse("booking-complete", args=[self.booking.id]), format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_complete_requires_confirmed_status(self) -> None:
        self.booking.status = Booking.Status.PENDING
        self.booking.save(update_fields=["status"])
        self.client.force_authenticate(self.owner)

        response = self.client.post(reverse("booking-complete", args=[self.booking.id]), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Only confirmed bookings can be completed")

    def test_owner_overrides_status(self) -> None:
        self.client.force_authenticate(self.owner)

        response = self.client.patch(
            reverse("booking-detail", args=[self.booking.id]), {"status": "no_show"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], Booking.Status.NO_SHOW)

    def test_status_override_rejects_unknown_value(self) -> None:
        self.client.force_authenticate(self.owner)

        response = self.client.patch(
            reverse("booking-detail", args=[self.booking.id]), {"status": "archived"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Invalid status")


class BookingTaskTests(APITestCase):
    def setUp(self) -> None:
        self.customer = make_customer()
        self.service = make_service(make_business())

    def test_expire_unpaid_bookings_releases_stale_holds(self) -> None:
        stale = make_booking(
            self.customer,
            self.service,
            status=Booking.Status.PENDING,
            payment_status=Booking.PaymentStatus.PENDING,
        )
        fresh = make_booking(
            self.customer,
            self.service,
            start=stale.start_time + timedelta(hours=2),
            status=Booking.Status.PENDING,
            payment_status=Booking.PaymentStatus.PENDING,
        )
        Booking.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(minutes=45))

        result = expire_unpaid_bookings()

        self.assertEqual(result, {"expired": 1})
        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.status, Booking.Status.CANCELLED)
        self.assertEqual(stale.payment_status, Booking.PaymentStatus.FAILED)
        self.assertEqual(fresh.status, Booking.Status.PENDING)

    def _stale_booking_with_intent(self) -> Booking:
        stale = make_booking(
            self.customer,
            self.service,
            status=Booking.Status.PENDING,
            payment_status=Booking.PaymentStatus.PENDING,
            stripe_payment_intent_id="pi_stale_1",
        )
        Booking.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(minutes=45))
        return stale

    @mock.patch("stripe.PaymentIntent.cancel", return_value=SimpleNamespace(id="pi_stale_1", status="canceled"))
    def test_expiry_cancels_the_payment_intent(self, intent_cancel) -> None:
        stale = self._stale_booking_with_intent()

        result = expire_unpaid_bookings()

        self.assertEqual(result, {"expired": 1})
        intent_cancel.assert_called_once_with(intent="pi_stale_1", cancellation_reason="abandoned")
        stale.refresh_from_db()
        self.assertEqual(stale.status, Booking.Status.CANCELLED)

    def test_expiry_still_releases_slot_when_intent_cancel_fails(self) -> None:
        stale = self._stale_booking_with_intent()
        error = stripe.InvalidRequestError("Intent already succeeded", param="intent")

        with mock.patch("stripe.PaymentIntent.cancel", side_effect=error):
            result = expire_unpaid_bookings()

        self.assertEqual(result, {"expired": 1})
        stale.refresh_from_db()
        self.assertEqual(stale.status, Booking.Status.CANCELLED)
        self.assertEqual(stale.payment_status, Booking.PaymentStatus.FAILED)

    def test_complete_finished_bookings(self) -> None:
        finished = make_booking(self.customer, self.service, start=timezone.now() - timedelta(hours=4))
        upcoming = make_booking(self.customer, self.service)

        result = complete_finished_bookings()

        self.assertEqual(result, {"completed": 1})
        finished.refresh_from_db()
        upcoming.refresh_from_db()
        self.assertEqual(finished.status, Booking.Status.COMPLETED)
        self.assertEqual(upcoming.status, Booking.Status.CONFIRMED)

    def test_reminders_are_sent_once(self) -> None:
        tomorrow = make_booking(self.customer, self.service, start=timezone.now() + timedelta(hours=20))
        make_booking(self.customer, self.service, start=timezone.now() + timedelta(days=3))

        first = send_upcoming_booking_reminders()
        second = send_upcoming_booking_reminders()

        self.assertEqual(first, {"sent": 1})
        self.assertEqual(second, {"sent": 0})
        tomorrow.refresh_from_db()
        self.assertIsNotNone(tomorrow.reminder_sent_at)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(tomorrow.customer.email, mail.outbox[0].to)
