"""API tests for the Stripe webhook, Connect onboarding and fee preview."""

from __future__ import annotations

import json
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import stripe
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.businesses.models import Business
from apps.catalog.models import InventoryLog
from apps.notifications.models import Notification
from apps.orders.models import Order, OrderItem
from apps.payments.models import PaymentTransaction
from shared.testing import make_booking, make_business, make_customer, make_product, make_service


def _event(event_id: str, event_type: str, obj: dict) -> dict:  # type: ignore
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


class StripeWebhookAPITests(APITestCase):
    def setUp(self) -> None:
        self.customer = make_customer()
        self.business = make_business()
        self.booking = make_booking(
            self.customer,
            make_service(self.business),
            status=Booking.Status.PENDING,
            payment_status=Booking.PaymentStatus.PENDING,
            stripe_payment_intent_id="pi_booking_1",
        )
        self.url = reverse("stripe-webhook")

    def _post(self, event: dict):  # type: ignore
        with mock.patch("stripe.Webhook.construct_event", return_value=event) as construct:
            response = self.client.post(
                self.url,
                data=json.dumps(event),
                content_type="application/json",
                HTTP_STRIPE_SIGNATURE="t=1,v1=signature",
            )
        construct.assert_called_once()
        self.assertEqual(construct.call_args.args[2], "whsec_test_glamfric")
        return response

    def test_missing_signature_is_rejected(self) -> None:
        response = self.client.post(self.url, data="{}", content_type="application/json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bad_signature_is_rejected(self) -> None:
        error = stripe.SignatureVerificationError("bad signature", "t=1,v1=nope")
        with mock.patch("stripe.Webhook.construct_event", side_effect=error):
            response = self.client.post(
                self.url, data="{}", content_type="application/json", HTTP_STRIPE_SIGNATURE="t=1,v1=nope"
            )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Invalid signature")
        self.assertFalse(PaymentTransaction.objects.exists())

    def test_payment_succeeded_confirms_booking(self) -> None:
        event = _event("evt_1", "payment_intent.succeeded", {"id": "pi_booking_1", "amount": 10000})

        with self.captureOnCommitCallbacks(execute=True):
            response = self._post(event)

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data, {"received": True, "duplicate": False})
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CONFIRMED)
        self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.SUCCEEDED)

        txn = PaymentTransaction.objects.get(event_id="evt_1")
        self.assertEqual(txn.booking, self.booking)
        self.assertEqual(txn.amount, Decimal("100.00"))
        self.assertTrue(Notification.objects.filter(user=self.customer, title="Booking confirmed").exists())
        self.assertTrue(Notification.objects.filter(user=self.business.owner, title="New booking").exists())

    def test_redelivered_event_is_processed_once(self) -> None:
        event = _event("evt_dup", "payment_intent.succeeded", {"id": "pi_booking_1", "amount": 10000})
        with self.captureOnCommitCallbacks(execute=True):
            self._post(event)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            response = self._post(event)

        self.assertEqual(response.data, {"received": True, "duplicate": True})
        self.assertEqual(callbacks, [])
        self.assertEqual(PaymentTransaction.objects.filter(event_id="evt_dup").count(), 1)
        self.assertEqual(Notification.objects.filter(title="Booking confirmed").count(), 1)

    def _expire_hold(self) -> None:
        self.booking.status = Booking.Status.CANCELLED
        self.booking.payment_status = Booking.PaymentStatus.FAILED
        self.booking.cancelled_at = self.booking.created_at
        self.booking.save(update_fields=["status", "payment_status", "cancelled_at"])

    def test_late_payment_reinstates_expired_hold_when_slot_is_free(self) -> None:
        self._expire_hold()

        with self.captureOnCommitCallbacks(execute=True):
            response = self._post(_event("evt_late", "payment_intent.succeeded", {"id": "pi_booking_1"}))

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CONFIRMED)
        self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.SUCCEEDED)
        self.assertIsNone(self.booking.cancelled_at)
        self.assertTrue(Notification.objects.filter(user=self.customer, title="Booking confirmed").exists())

    @mock.patch("stripe.Refund.create", return_value=SimpleNamespace(id="re_late_1"))
    def test_late_payment_for_rebooked_slot_is_refunded(self, refund_create) -> None:
        self._expire_hold()
        rebooked = make_booking(make_customer(), self.booking.service, start=self.booking.start_time)

        with self.captureOnCommitCallbacks(execute=True):
            response = self._post(_event("evt_late", "payment_intent.succeeded", {"id": "pi_booking_1"}))

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        refund_create.assert_called_once_with(payment_intent="pi_booking_1", reason="requested_by_customer")
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CANCELLED)
        self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.REFUNDED)
        confirmed = Booking.objects.filter(start_time=self.booking.start_time, status=Booking.Status.CONFIRMED)
        self.assertEqual(list(confirmed), [rebooked])
        self.assertEqual(PaymentTransaction.objects.get(event_id="evt_late").booking, self.booking)
        self.assertTrue(Notification.objects.filter(user=self.customer, title="Refund processed").exists())
        self.assertFalse(Notification.objects.filter(user=self.customer, title="Booking confirmed").exists())

    @mock.patch("stripe.Refund.create", return_value=SimpleNamespace(id="re_late_2"))
    def test_late_payment_for_customer_cancelled_booking_is_refunded(self, refund_create) -> None:
        self.booking.status = Booking.Status.CANCELLED
        self.booking.save(update_fields=["status"])

        response = self._post(_event("evt_late", "payment_intent.succeeded", {"id": "pi_booking_1"}))

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        refund_create.assert_called_once()
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CANCELLED)
        self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.REFUNDED)

    def test_failed_late_refund_is_left_for_stripe_to_retry(self) -> None:
        self._expire_hold()
        make_booking(make_customer(), self.booking.service, start=self.booking.start_time)
        error = stripe.InvalidRequestError("Charge is not refundable", param="payment_intent")

        with mock.patch("stripe.Refund.create", side_effect=error):
            response = self._post(_event("evt_late", "payment_intent.succeeded", {"id": "pi_booking_1"}))

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertFalse(PaymentTransaction.objects.filter(event_id="evt_late").exists())
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.FAILED)

    def test_payment_failed_marks_booking(self) -> None:
        event = _event("evt_2", "payment_intent.payment_failed", {"id": "pi_booking_1", "amount": 10000})

        response = self._post(event)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.FAILED)
        self.assertEqual(self.booking.status, Booking.Status.PENDING)

    def test_payment_failed_restores_order_stock(self) -> None:
        product = make_product(self.business, quantity=8)
        order = Order.objects.create(
            customer=self.customer,
            business=self.business,
            subtotal=Decimal("50.00"),
            total=Decimal("50.00"),
            stripe_payment_intent_id="pi_order_1",
        )
        OrderItem.objects.create(
            order=order, product=product, quantity=2, unit_price=Decimal("25.00"), total=Decimal("50.00")
        )

        self._post(_event("evt_3", "payment_intent.payment_failed", {"id": "pi_order_1", "amount": 5000}))

        order.refresh_from_db()
        product.refresh_from_db()
        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.assertEqual(order.payment_status, Order.PaymentStatus.FAILED)
        self.assertEqual(product.quantity, 10)
        log = InventoryLog.objects.get(product=product)
        self.assertEqual((log.type, log.quantity, log.reference), (InventoryLog.LogType.RETURN, 2, order.order_number))

    def test_payment_succeeded_moves_order_to_processing(self) -> None:
        order = Order.objects.create(
            customer=self.customer,
            business=self.business,
            subtotal=Decimal("25.00"),
            total=Decimal("25.00"),
            stripe_payment_intent_id="pi_order_2",
        )

        self._post(_event("evt_4", "payment_intent.succeeded", {"id": "pi_order_2", "amount": 2500}))

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PROCESSING)
        self.assertEqual(order.payment_status, Order.PaymentStatus.SUCCEEDED)

    def test_account_updated_sets_onboarding(self) -> None:
        pending = make_business(onboarded=False, stripe_account_id="acct_pending")

        self._post(_event("evt_5", "account.updated", {"id": "acct_pending", "charges_enabled": True, "payouts_enabled": True}))

        pending.refresh_from_db()
        self.assertTrue(pending.stripe_onboarded)

    def test_unknown_event_is_recorded_as_ignored(self) -> None:
        self._post(_event("evt_6", "charge.dispute.created", {"id": "dp_1"}))

        txn = PaymentTransaction.objects.get(event_id="evt_6")
        self.assertEqual(txn.status, PaymentTransaction.Status.IGNORED)


class StripeConnectAPITests(APITestCase):
    def setUp(self) -> None:
        self.business = make_business(onboarded=False)
        self.client.force_authenticate(self.business.owner)

    @mock.patch("stripe.AccountLink.create", return_value=SimpleNamespace(url="https://connect.stripe.com/setup/abc"))
    @mock.patch("stripe.Account.create", return_value=SimpleNamespace(id="acct_new_1"))
    def test_connect_creates_account_once(self, account_create, link_create) -> None:
        first = self.client.post(reverse("stripe-connect-account"))
        second = self.client.post(reverse("stripe-connect-account"))

        self.assertEqual(first.status_code, status.HTTP_200_OK, first.data)
        self.assertEqual(first.data, {"url": "https://connect.stripe.com/setup/abc", "account_id": "acct_new_1"})
        self.assertEqual(second.data["account_id"], "acct_new_1")
        account_create.assert_called_once()
        self.assertEqual(account_create.call_args.kwargs["type"], "express")
        return_url = link_create.call_args.kwargs["return_url"]
        self.assertIn(f"business_id={self.business.id}", return_url)

    @mock.patch("stripe.Account.create", side_effect=stripe.APIError("Stripe is down"))
    def test_connect_failure_returns_bad_gateway(self, account_create) -> None:
        response = self.client.post(reverse("stripe-connect-account"))

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)

    @mock.patch("stripe.Account.retrieve", return_value={"charges_enabled": True, "payouts_enabled": True})
    def test_callback_marks_business_onboarded(self, account_retrieve) -> None:
        Business.objects.filter(pk=self.business.pk).update(stripe_account_id="acct_cb_1")
        self.client.force_authenticate(None)

        response = self.client.get(reverse("stripe-connect-callback"), {"business_id": self.business.id})

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertTrue(response["Location"].endswith("success=stripe_connected"))
        self.business.refresh_from_db()
        self.assertTrue(self.business.stripe_onboarded)

    @mock.patch("stripe.Account.retrieve", return_value={"charges_enabled": True, "payouts_enabled": False})
    def test_callback_with_incomplete_onboarding(self, account_retrieve) -> None:
        Business.objects.filter(pk=self.business.pk).update(stripe_account_id="acct_cb_2")

        response = self.client.get(reverse("stripe-connect-callback"), {"business_id": self.business.id})

        self.assertTrue(response["Location"].endswith("error=onboarding_incomplete"))

    def test_callback_with_unknown_business(self) -> None:
        response = self.client.get(reverse("stripe-connect-callback"), {"business_id": 999999})

        self.assertTrue(response["Location"].endswith("error=invalid_business"))

    def test_portal_requires_connected_account(self) -> None:
        response = self.client.post(reverse("stripe-connect-portal"))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Stripe account not connected")

    @mock.patch("stripe.Account.create_login_link", return_value=SimpleNamespace(url="https://connect.stripe.com/express/xyz"))
    def test_portal_returns_login_link(self, login_link) -> None:
        Business.objects.filter(pk=self.business.pk).update(stripe_account_id="acct_ok", stripe_onboarded=True)

        response = self.client.post(reverse("stripe-connect-portal"))

        self.assertEqual(response.data, {"url": "https://connect.stripe.com/express/xyz"})
        login_link.assert_called_once_with(account="acct_ok")

    def test_customer_cannot_start_onboarding(self) -> None:
        self.client.force_authenticate(make_customer())

        response = self.client.post(reverse("stripe-connect-account"))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class FeePreviewAPITests(APITestCase):
    def test_fee_preview(self) -> None:
        response = self.client.get(reverse("fee-preview"), {"amount": "100.00"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["stripe_fee"], "3.20")
        self.assertEqual(response.data["business_payout"], "81.80")

    def test_fee_preview_requires_positive_amount(self) -> None:
        response = self.client.get(reverse("fee-preview"), {"amount": "0"})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
