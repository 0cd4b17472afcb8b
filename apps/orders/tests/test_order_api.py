"""API tests for product orders."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import InventoryLog
from apps.orders.models import Order
from apps.promotions.models import Promotion, PromotionUsage
from shared.testing import make_business, make_customer, make_product

ADDRESS = {"line1": "5 Court St", "city": "Brooklyn", "state": "NY", "zip": "11201"}


@mock.patch("stripe.Customer.create", return_value=SimpleNamespace(id="cus_order_1"))
@mock.patch(
    "stripe.PaymentIntent.create",
    return_value=SimpleNamespace(id="pi_order_1", client_secret="pi_order_1_secret"),
)
class OrderCreateAPITests(APITestCase):
    def setUp(self) -> None:
        self.customer = make_customer()
        self.business = make_business()
        self.oil = make_product(self.business, name="Argan Oil", quantity=5)
        self.comb = make_product(self.business, name="Comb", price=Decimal("4.00"), track_inventory=False, quantity=0)
        self.client.force_authenticate(self.customer)
        self.url = reverse("order-list")

    def _payload(self, **overrides):  # type: ignore
        payload = {
            "business_id": self.business.id,
            "items": [{"product_id": self.oil.id, "quantity": 2}],
            "fulfillment": "PICKUP",
        }
        payload.update(overrides)
        return payload

    def test_pickup_order_reserves_stock(self, intent_create, customer_create) -> None:
        response = self.client.post(self.url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["total"], "50.00")
        self.assertEqual(response.data["client_secret"], "pi_order_1_secret")
        self.assertRegex(response.data["order_number"], r"^GF-\d{8}-[A-Z0-9]{8}$")

        order = Order.objects.get(pk=response.data["order_id"])
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.stripe_payment_intent_id, "pi_order_1")
        self.assertEqual(order.customer_email, self.customer.email)
        self.oil.refresh_from_db()
        self.assertEqual(self.oil.quantity, 3)
        log = InventoryLog.objects.get(product=self.oil)
        self.assertEqual((log.type, log.quantity, log.reference), (InventoryLog.LogType.SALE, -2, order.order_number))
        self.assertEqual(intent_create.call_args.kwargs["metadata"]["type"], "order")

    def test_delivery_adds_fee(self, intent_create, customer_create) -> None:
        response = self.client.post(
            self.url, self._payload(fulfillment="DELIVERY", shipping_address=ADDRESS), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["total"], "60.00")
        self.assertEqual(response.data["fees"], {"platform": "9.00", "stripe": "2.04", "business": "48.96"})
        self.assertEqual(intent_create.call_args.kwargs["amount"], 6000)

    def test_delivery_requires_address(self, intent_create, customer_create) -> None:
        response = self.client.post(self.url, self._payload(fulfillment="DELIVERY"), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("shipping_address", response.data)

    def test_repeated_lines_are_merged(self, intent_create, customer_create) -> None:
        items = [{"product_id": self.oil.id, "quantity": 1}, {"product_id": self.oil.id, "quantity": 2}]

        response = self.client.post(self.url, self._payload(items=items), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        order = Order.objects.get(pk=response.data["order_id"])
        self.assertEqual([(i.product_id, i.quantity) for i in order.items.all()], [(self.oil.id, 3)])

    def test_insufficient_stock(self, intent_create, customer_create) -> None:
        response = self.client.post(
            self.url, self._payload(items=[{"product_id": self.oil.id, "quantity": 6}]), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Insufficient stock for Argan Oil")
        intent_create.assert_not_called()

    def test_untracked_products_skip_stock(self, intent_create, customer_create) -> None:
        response = self.client.post(
            self.url, self._payload(items=[{"product_id": self.comb.id, "quantity": 3}]), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertFalse(InventoryLog.objects.filter(product=self.comb).exists())

    def test_foreign_product_is_unavailable(self, intent_create, customer_create) -> None:
        foreign = make_product(make_business())

        response = self.client.post(
            self.url, self._payload(items=[{"product_id": foreign.id, "quantity": 1}]), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "One or more products are unavailable")

    def test_promo_code_discounts_and_records_usage(self, intent_create, customer_create) -> None:
        promotion = Promotion.objects.create(
            business=self.business,
            name="Five off",
            code="FIVE",
            type=Promotion.Type.FIXED_AMOUNT,
            value=Decimal("5"),
            start_date=timezone.now() - timedelta(days=1),
            end_date=timezone.now() + timedelta(days=1),
        )

        response = self.client.post(self.url, self._payload(promo_code="five"), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["total"], "45.00")
        order = Order.objects.get(pk=response.data["order_id"])
        self.assertEqual(order.discount_amount, Decimal("5.00"))
        self.assertEqual(PromotionUsage.objects.get(promotion=promotion).order, order)

    def test_invalid_promo_code_leaves_stock(self, intent_create, customer_create) -> None:
        response = self.client.post(self.url, self._payload(promo_code="NOPE"), format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.oil.refresh_from_db()
        self.assertEqual(self.oil.quantity, 5)
        self.assertFalse(Order.objects.exists())

    def test_gateway_failure_rolls_back(self, intent_create, customer_create) -> None:
        import stripe

        intent_create.side_effect = stripe.CardError("Declined", param=None, code="card_declined")

        response = self.client.post(self.url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.oil.refresh_from_db()
        self.assertEqual(self.oil.quantity, 5)
        self.assertFalse(Order.objects.exists())

    def test_business_without_payments(self, intent_create, customer_create) -> None:
        self.business.stripe_onboarded = False
        self.business.save(update_fields=["stripe_onboarded"])

        response = self.client.post(self.url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["detail"], "Business is not set up to accept payments")


class OrderListAPITests(APITestCase):
    def setUp(self) -> None:
        self.customer = make_customer()
        self.business = make_business()
        self.order = Order.objects.create(
            customer=self.customer, business=self.business, subtotal=Decimal("25.00"), total=Decimal("25.00")
        )
        Order.objects.create(
            customer=make_customer(), business=make_business(), subtotal=Decimal("9.00"), total=Decimal("9.00")
        )

    def test_customer_sees_own_orders(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.get(reverse("order-list"))

        self.assertEqual([row["id"] for row in response.data], [self.order.id])

    def test_owner_sees_business_orders(self) -> None:
        self.client.force_authenticate(self.business.owner)

        response = self.client.get(reverse("order-list"))

        self.assertEqual([row["id"] for row in response.data], [self.order.id])

    def test_stranger_cannot_read_order(self) -> None:
        self.client.force_authenticate(make_customer())

        response = self.client.get(reverse("order-detail", args=[self.order.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
