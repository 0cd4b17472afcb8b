from __future__ import annotations

from decimal import Decimal

import pytest
from django.test import override_settings

from apps.payments.fees import calculate_fees


def test_hundred_dollar_split():
    fees = calculate_fees(Decimal("100.00"))

    assert fees.amount_cents == 10000
    assert fees.stripe_fee == Decimal("3.20")
    assert fees.platform_fee == Decimal("15.00")
    assert fees.business_payout == Decimal("81.80")


def test_parts_always_add_up():
    fees = calculate_fees("37.49")

    assert fees.stripe_fee_cents + fees.platform_fee_cents + fees.business_payout_cents == fees.amount_cents


def test_half_cents_round_up():
    fees = calculate_fees("0.50")

    # 50 * 2.9% + 30 = 31.45 -> 31, 50 * 15% = 7.5 -> 8
    assert fees.stripe_fee_cents == 31
    assert fees.platform_fee_cents == 8
    assert fees.business_payout_cents == 11


def test_tiny_charge_payout_can_go_negative():
    fees = calculate_fees("0.10")

    assert fees.business_payout < 0


@override_settings(PLATFORM_FEE_PERCENTAGE=Decimal("10"))
def test_platform_percentage_comes_from_settings():
    assert calculate_fees(100).platform_fee == Decimal("10.00")


@pytest.mark.parametrize("amount", [0, "-5"])
def test_non_positive_amount_is_rejected(amount):
    with pytest.raises(ValueError):
        calculate_fees(amount)


def test_as_dict_uses_strings_for_money():
    data = calculate_fees(100).as_dict()

    assert data["business_payout"] == "81.80"
    assert data["platform_fee_cents"] == 1500
