"""Order checkout."""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from django.conf import settings  # type: ignore
from django.db import transaction  # type: ignore
from django.db.models import F  # type: ignore

from apps.businesses.models import Business
from apps.catalog.models import InventoryLog, Product
from apps.payments.fees import FeeBreakdown, calculate_fees
from apps.payments.stripe_client import StripeGateway
from apps.promotions.services import Cart, find_promotion, record_usage

from .models import Order, OrderItem

logger = logging.getLogger(__name__)


class OrderError(Exception):
    """Raised when an order cannot be placed."""


@dataclass
class OrderCheckout:
    order: Order
    client_secret: str
    fees: FeeBreakdown

    def as_response(self) -> dict[str, Any]:
        return {
            "order_id": self.order.id,
            "order_number": self.order.order_number,
            "client_secret": self.client_secret,
            "total": str(self.order.total),
            "fees": {
                "platform": str(self.fees.platform_fee),
                "stripe": str(self.fees.stripe_fee),
                "business": str(self.fees.business_payout),
            },
        }


def _merge_items(items: Iterable[dict[str, int]]) -> "OrderedDict[int, int]":
    """Collapse repeated product lines into one quantity per product."""
    merged: OrderedDict[int, int] = OrderedDict()
    for item in items:
        merged[item["product_id"]] = merged.get(item["product_id"], 0) + item["quantity"]
    return merged


def create_order(
    customer,
    *,
    business_id: int,
    items: Iterable[dict[str, int]],
    fulfillment: str = Order.Fulfillment.PICKUP,
    shipping_address: dict[str, Any] | None = None,
    promo_code: str | None = None,
    customer_email: str = "",
    customer_phone: str = "",
    delivery_notes: str = "",
    gateway: StripeGateway | None = None,
) -> OrderCheckout:
    """
    Reserve stock, apply a promotion and open a PaymentIntent for the order.

    Everything happens in one transaction with the product rows locked, so a
    failed payment call or promotion check leaves stock untouched.
    """
    business = Business.objects.filter(pk=business_id, is_active=True).first()
    if business is None:
        raise OrderError("Business not found")
    if not business.can_accept_payments:
        raise OrderError("Business is not set up to accept payments")
    if fulfillment == Order.Fulfillment.DELIVERY and not shipping_address:
        raise OrderError("Shipping address is required for delivery")

    quantities = _merge_items(items)
    if not quantities:
        raise OrderError("Order must contain at least one item")

    gateway = gateway or StripeGateway()

    with transaction.atomic():
        products = {
            product.id: product
            for product in Product.objects.select_for_update().filter(
                pk__in=list(quantities), business=business, is_active=True
            )
        }
        if len(products) != len(quantities):
            raise OrderError("One or more products are unavailable")

        subtotal = Decimal("0.00")
        for product_id, quantity in quantities.items():
            product = products[product_id]
            if not product.has_stock_for(quantity):
                raise OrderError(f"Insufficient stock for {product.name}")
            subtotal += product.price * quantity

        item_count = sum(quantities.values())
        cart = Cart(subtotal=subtotal, product_ids=list(quantities), item_count=item_count)

        promotion = None
        discount = Decimal("0.00")
        if promo_code:
            applied = find_promotion(business.id, customer, cart, code=promo_code)
            promotion, discount = applied.promotion, applied.discount_amount

        delivery_fee = settings.ORDER_DELIVERY_FEE if fulfillment == Order.Fulfillment.DELIVERY else Decimal("0.00")
        total = subtotal - discount + delivery_fee
        if total <= 0:
            raise OrderError("Order total must be greater than zero")
        fees = calculate_fees(total)

        order = Order.objects.create(
            customer=customer,
            business=business,
            type=Order.Type.PRODUCT_ONLY,
            fulfillment=fulfillment,
            shipping_address=shipping_address or None,
            customer_email=customer_email or customer.email,
            customer_phone=customer_phone or (customer.phone or ""),
            delivery_notes=delivery_notes,
            subtotal=subtotal,
            discount_amount=discount,
            delivery_fee=delivery_fee,
            total=total,
            platform_fee=fees.platform_fee,
            stripe_fee=fees.stripe_fee,
            business_payout=fees.business_payout,
            promotion=promotion,
        )

        for product_id, quantity in quantities.items():
            product = products[product_id]
            OrderItem.objects.create(
                order=order,
                product=product,
                quantity=quantity,
                unit_price=product.price,
                total=product.price * quantity,
            )
            if product.track_inventory:
                Product.objects.filter(pk=product.pk).update(quantity=F("quantity") - quantity)
                InventoryLog.objects.create(
                    product=product,
                    type=InventoryLog.LogType.SALE,
                    quantity=-quantity,
                    reason=f"Order #{order.order_number}",
                    reference=order.order_number,
                )

        customer_id = gateway.get_or_create_customer(customer)
        intent = gateway.create_destination_payment_intent(
            amount_cents=fees.amount_cents,
            application_fee_cents=fees.platform_fee_cents,
            destination_account=business.stripe_account_id,
            customer_id=customer_id,
            description=f"Order {order.order_number} at {business.business_name}",
            metadata={
                "type": "order",
                "order_id": str(order.id),
                "order_number": order.order_number,
                "business_id": str(business.id),
                "business_name": business.business_name,
                "user_id": str(customer.id),
                "fulfillment": fulfillment,
                "promotion_id": str(promotion.id) if promotion else "",
                "discount_amount": str(discount),
            },
        )
        order.stripe_payment_intent_id = intent.id
        order.save(update_fields=["stripe_payment_intent_id", "updated_at"])

        if promotion is not None:
            record_usage(promotion, customer, cart, order=order)

    logger.info(f"Order {order.order_number} created for user {customer.id} at business {business.id}")
    return OrderCheckout(order=order, client_secret=intent.client_secret, fees=fees)
