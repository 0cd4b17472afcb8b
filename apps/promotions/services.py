"""
Promotion engine.

``validate_promotion`` runs the eligibility checks in a fixed order and
stops at the first failure; ``calculate_discount`` turns a valid promotion
into a dollar amount.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from django.db import transaction  # type: ignore
from django.db.models import F  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Promotion, PromotionUsage

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class PromotionError(Exception):
    """Raised when a promotion cannot be applied."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class Cart:
    """What the customer is about to pay for."""

    subtotal: Decimal
    service_ids: list[int] = field(default_factory=list)
    product_ids: list[int] = field(default_factory=list)
    item_count: int = 1

    def __post_init__(self) -> None:
        self.subtotal = Decimal(str(self.subtotal))


@dataclass
class AppliedPromotion:
    promotion: Promotion
    discount_amount: Decimal
    final_amount: Decimal

    def as_response(self) -> dict[str, Any]:
        promo = self.promotion
        return {
            "valid": True,
            "promotion": {
                "id": promo.id,
                "name": promo.name,
                "description": promo.description,
                "type": promo.type,
                "value": str(promo.value),
                "code": promo.code,
            },
            "discount_amount": str(self.discount_amount),
            "final_amount": str(self.final_amount),
        }


def _format_amount(value: Decimal) -> str:
    return f"{value.quantize(CENT)}"


def _is_returning_customer(promotion: Promotion, user, exclude_booking_id=None, exclude_order_id=None) -> bool:  # type: ignore
    from apps.bookings.models import Booking
    from apps.orders.models import Order

    bookings = Booking.objects.filter(
        customer=user,
        business_id=promotion.business_id,
        status__in=[Booking.Status.CONFIRMED, Booking.Status.COMPLETED],
    )
    if exclude_booking_id is not None:
        bookings = bookings.exclude(pk=exclude_booking_id)

    orders = Order.objects.filter(
        customer=user,
        business_id=promotion.business_id,
        status__in=[Order.Status.PROCESSING, Order.Status.COMPLETED],
    )
    if exclude_order_id is not None:
        orders = orders.exclude(pk=exclude_order_id)

    return bookings.exists() or orders.exists()


def _applies_to_items(promotion: Promotion, cart: Cart) -> bool:
    scope = promotion.scope
    if scope == Promotion.Scope.SPECIFIC_SERVICES:
        return promotion.services.filter(id__in=cart.service_ids).exists()
    if scope == Promotion.Scope.SPECIFIC_PRODUCTS:
        return promotion.products.filter(id__in=cart.product_ids).exists()
    if scope == Promotion.Scope.ALL_SERVICES:
        return bool(cart.service_ids)
    if scope == Promotion.Scope.ALL_PRODUCTS:
        return bool(cart.product_ids)
    return True


def validate_promotion(promotion: Promotion, user, cart: Cart, *, exclude_booking_id=None, exclude_order_id=None) -> None:  # type: ignore
    """Raise PromotionError with the first failing rule."""
    now = timezone.now()

    if not promotion.is_active:
        raise PromotionError("Promotion is not active")
    if now < promotion.start_date:
        raise PromotionError("Promotion has not started yet")
    if now > promotion.end_date:
        raise PromotionError("Promotion has expired")
    if promotion.usage_limit and promotion.usage_count >= promotion.usage_limit:
        raise PromotionError("Promotion usage limit reached")
    if promotion.per_customer_limit:
        used = PromotionUsage.objects.filter(promotion=promotion, user=user).count()
        if used >= promotion.per_customer_limit:
            raise PromotionError("You have already used this promotion")
    if promotion.minimum_amount and cart.subtotal < promotion.minimum_amount:
        raise PromotionError(f"Minimum purchase amount of ${_format_amount(promotion.minimum_amount)} required")
    if promotion.minimum_items and cart.item_count < promotion.minimum_items:
        raise PromotionError(f"Minimum {promotion.minimum_items} items required")
    if promotion.first_time_only and _is_returning_customer(
        promotion, user, exclude_booking_id=exclude_booking_id, exclude_order_id=exclude_order_id
    ):
        raise PromotionError("This promotion is only for first-time customers")
    if not _applies_to_items(promotion, cart):
        raise PromotionError("Promotion does not apply to these items")


def calculate_discount(promotion: Promotion, subtotal: Decimal, item_count: int = 1) -> Decimal:
    subtotal = Decimal(str(subtotal))
    value = Decimal(promotion.value)

    if promotion.type == Promotion.Type.PERCENTAGE:
        discount = subtotal * value / 100
    elif promotion.type == Promotion.Type.FIXED_AMOUNT:
        discount = min(value, subtotal)
    elif promotion.type == Promotion.Type.BOGO:
        discount = subtotal * Decimal("0.5")
    elif promotion.type == Promotion.Type.BUNDLE:
        discount = subtotal * value / 100 if item_count >= 2 else Decimal("0")
    else:
        discount = Decimal("0")

    return discount.quantize(CENT, rounding=ROUND_HALF_UP)


def _apply(promotion: Promotion, cart: Cart) -> AppliedPromotion:
    discount = calculate_discount(promotion, cart.subtotal, cart.item_count)
    final_amount = max(Decimal("0.00"), cart.subtotal - discount).quantize(CENT)
    return AppliedPromotion(promotion=promotion, discount_amount=discount, final_amount=final_amount)


def find_promotion(business_id: int, user, cart: Cart, code: str | None = None) -> AppliedPromotion:
    """
    Resolve the promotion for a cart.

    With a code the matching promotion must pass every check. Without one the
    featured automatic promotions are tried from the biggest value down and
    the first that passes wins.
    """
    if code:
        promotion = Promotion.objects.filter(business_id=business_id, code__iexact=code.strip()).first()
        if promotion is None:
            raise PromotionError("Invalid promo code", status_code=404)
        validate_promotion(promotion, user, cart)
        return _apply(promotion, cart)

    candidates: Iterable[Promotion] = Promotion.objects.filter(
        business_id=business_id,
        code__isnull=True,
        is_active=True,
        is_featured=True,
    ).order_by("-value")
    for promotion in candidates:
        try:
            validate_promotion(promotion, user, cart)
        except PromotionError:
            continue
        return _apply(promotion, cart)

    raise PromotionError("No promotions available")


def record_usage(
    promotion: Promotion,
    user,
    cart: Cart,
    *,
    booking=None,
    order=None,
) -> PromotionUsage:  # type: ignore
    """Re-validate, then store the redemption and bump the counter atomically."""
    with transaction.atomic():
        promotion = Promotion.objects.select_for_update().get(pk=promotion.pk)
        validate_promotion(
            promotion,
            user,
            cart,
            exclude_booking_id=getattr(booking, "pk", None),
            exclude_order_id=getattr(order, "pk", None),
        )
        applied = _apply(promotion, cart)
        usage = PromotionUsage.objects.create(
            promotion=promotion,
            user=user,
            discount_amount=applied.discount_amount,
            order_total=cart.subtotal,
            booking=booking,
            order=order,
        )
        Promotion.objects.filter(pk=promotion.pk).update(usage_count=F("usage_count") + 1)

    logger.info(f"Promotion {promotion.id} used by user {user.id} (-{applied.discount_amount})")
    return usage
