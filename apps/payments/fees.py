"""Marketplace fee split.

Every charge is divided between Stripe's processing fee, the platform
commission and the business payout. All arithmetic happens in integer cents.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.conf import settings  # type: ignore

from shared.domain.value_objects import Money


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FeeBreakdown:
    amount_cents: int
    stripe_fee_cents: int
    platform_fee_cents: int
    business_payout_cents: int

    @property
    def amount(self) -> Decimal:
        return Money.from_cents(self.amount_cents).quantized().amount

    @property
    def stripe_fee(self) -> Decimal:
        return Money.from_cents(self.stripe_fee_cents).quantized().amount

    @property
    def platform_fee(self) -> Decimal:
        return Money.from_cents(self.platform_fee_cents).quantized().amount

    @property
    def business_payout(self) -> Decimal:
        # The payout can go negative on tiny charges, so Money is not used here.
        return (Decimal(self.business_payout_cents) / 100).quantize(Decimal("0.01"))

    def as_dict(self) -> dict[str, Any]:
        return {
            "amount": str(self.amount),
            "stripe_fee": str(self.stripe_fee),
            "platform_fee": str(self.platform_fee),
            "business_payout": str(self.business_payout),
            "amount_cents": self.amount_cents,
            "stripe_fee_cents": self.stripe_fee_cents,
            "platform_fee_cents": self.platform_fee_cents,
            "business_payout_cents": self.business_payout_cents,
        }


def calculate_fees(amount) -> FeeBreakdown:  # type: ignore
    """
    Split a charge in dollars into Stripe fee, platform fee and payout.

    stripe_fee = round(cents * 2.9% + 30), platform_fee = round(cents * 15%),
    payout = cents - stripe_fee - platform_fee.

    Raises:
        ValueError: if the amount is not positive.
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise ValueError("Amount must be greater than zero")

    cents = Money(amount).cents
    stripe_fee = _round_cents(
        Decimal(cents) * settings.STRIPE_FEE_PERCENTAGE / 100 + settings.STRIPE_FEE_FIXED * 100
    )
    platform_fee = _round_cents(Decimal(cents) * settings.PLATFORM_FEE_PERCENTAGE / 100)

    return FeeBreakdown(
        amount_cents=cents,
        stripe_fee_cents=stripe_fee,
        platform_fee_cents=platform_fee,
        business_payout_cents=cents - stripe_fee - platform_fee,
    )
