"""Stripe webhook processing."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Callable

from django.db import transaction  # type: ignore
from django.db.models import F  # type: ignore

from apps.bookings.models import Booking
from apps.bookings.services import BookingConflictError, ensure_slot_is_available
from apps.businesses.models import Business
from apps.catalog.models import InventoryLog, Product
from apps.orders.models import Order

from .models import PaymentTransaction
from .stripe_client import StripeGateway

logger = logging.getLogger(__name__)


def _as_dict(event: Any) -> dict[str, Any]:
    if hasattr(event, "to_dict_recursive"):
        return event.to_dict_recursive()
    if hasattr(event, "to_dict"):
        return event.to_dict()
    return dict(event)


def _settle_late_payment(booking: Booking, intent_id: str) -> bool:
    """
    Decide what a payment for an already cancelled booking buys.

    A hold released by the expiry task is reinstated when its slot is still
    free. Otherwise the money goes back to the customer and the booking
    stays cancelled. Returns True when the booking was reinstated.
    """
    if booking.payment_status == Booking.PaymentStatus.FAILED:
        try:
            ensure_slot_is_available(
                booking.business,
                booking.date,
                booking.start_time,
                booking.end_time,
                exclude_booking_id=booking.id,
            )
        except BookingConflictError:
            pass
        else:
            booking.cancelled_at = None
            booking.append_note("Reinstated: payment arrived after the hold expired")
            return True

    refund = StripeGateway().create_refund(intent_id, reason="duplicate")
    booking.payment_status = Booking.PaymentStatus.REFUNDED
    booking.append_note("Refunded: payment arrived after the slot was released")
    booking.save(update_fields=["payment_status", "notes", "updated_at"])
    logger.info(f"Late payment {intent_id} for cancelled booking {booking.id} refunded ({refund.id})")
    return False


def _handle_payment_succeeded(txn: PaymentTransaction, intent: dict[str, Any]) -> None:
    from apps.bookings.tasks import notify_booking_confirmed, notify_booking_refunded

    booking = Booking.objects.select_for_update().filter(stripe_payment_intent_id=intent["id"]).first()
    if booking is not None:
        txn.booking = booking
        booking_id = booking.id
        if booking.status == Booking.Status.CANCELLED and not _settle_late_payment(booking, intent["id"]):
            transaction.on_commit(lambda: notify_booking_refunded.delay(booking_id))
        else:
            booking.status = Booking.Status.CONFIRMED
            booking.payment_status = Booking.PaymentStatus.SUCCEEDED
            booking.save(update_fields=["status", "payment_status", "cancelled_at", "notes", "updated_at"])
            transaction.on_commit(lambda: notify_booking_confirmed.delay(booking_id))
            logger.info(f"Booking {booking.id} confirmed by payment {intent['id']}")

    order = Order.objects.select_for_update().filter(stripe_payment_intent_id=intent["id"]).first()
    if order is not None:
        order.status = Order.Status.PROCESSING
        order.payment_status = Order.PaymentStatus.SUCCEEDED
        order.save(update_fields=["status", "payment_status", "updated_at"])
        txn.order = order
        logger.info(f"Order {order.order_number} paid by {intent['id']}")

    if booking is None and order is None:
        logger.warning(f"No booking or order found for payment intent {intent['id']}")


def _handle_payment_failed(txn: PaymentTransaction, intent: dict[str, Any]) -> None:
    booking = Booking.objects.filter(stripe_payment_intent_id=intent["id"]).first()
    if booking is not None:
        booking.payment_status = Booking.PaymentStatus.FAILED
        booking.save(update_fields=["payment_status", "updated_at"])
        txn.booking = booking
        logger.info(f"Payment failed for booking {booking.id}")

    order = Order.objects.filter(stripe_payment_intent_id=intent["id"]).first()
    if order is not None and order.payment_status != Order.PaymentStatus.FAILED:
        order.payment_status = Order.PaymentStatus.FAILED
        order.status = Order.Status.CANCELLED
        order.save(update_fields=["payment_status", "status", "updated_at"])
        for item in order.items.select_related("product"):
            if not item.product.track_inventory:
                continue
            Product.objects.filter(pk=item.product_id).update(quantity=F("quantity") + item.quantity)
            InventoryLog.objects.create(
                product=item.product,
                type=InventoryLog.LogType.RETURN,
                quantity=item.quantity,
                reason="Payment failed",
                reference=order.order_number,
            )
        txn.order = order
        logger.info(f"Payment failed for order {order.order_number}; stock restored")


def _handle_account_updated(txn: PaymentTransaction, account: dict[str, Any]) -> None:
    onboarded = bool(account.get("charges_enabled") and account.get("payouts_enabled"))
    updated = Business.objects.filter(stripe_account_id=account["id"]).update(stripe_onboarded=onboarded)
    logger.info(f"Connect account {account['id']} updated: onboarded={onboarded} ({updated} business)")


HANDLERS: dict[str, Callable[[PaymentTransaction, dict[str, Any]], None]] = {
    "payment_intent.succeeded": _handle_payment_succeeded,
    "payment_intent.payment_failed": _handle_payment_failed,
    "account.updated": _handle_account_updated,
}


@transaction.atomic
def process_webhook_event(event: Any) -> bool:
    """
    Apply a verified Stripe event.

    Returns False when the event id was already recorded. A handler failure
    rolls back the ledger row too, so Stripe's retry is processed normally.
    """
    data = _as_dict(event)
    event_id = data["id"]
    event_type = data["type"]
    obj = data.get("data", {}).get("object", {}) or {}

    if PaymentTransaction.objects.filter(event_id=event_id).exists():
        logger.info(f"Duplicate Stripe event {event_id} ({event_type}) acknowledged")
        return False

    amount = obj.get("amount") if event_type.startswith("payment_intent.") else None
    txn = PaymentTransaction(
        event_id=event_id,
        event_type=event_type,
        payment_intent_id=obj.get("id", "") if event_type.startswith("payment_intent.") else "",
        amount=Decimal(amount) / 100 if amount is not None else None,
        payload=data,
    )

    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled Stripe event type {event_type}")
        txn.status = PaymentTransaction.Status.IGNORED
    else:
        handler(txn, obj)

    txn.save()
    return True
