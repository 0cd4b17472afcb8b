from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.bookings.models import Booking
from apps.promotions.models import Promotion, PromotionUsage
from apps.promotions.services import (
    Cart,
    PromotionError,
    calculate_discount,
    find_promotion,
    record_usage,
    validate_promotion,
)
from shared.testing import make_booking, make_business, make_customer, make_product, make_service


def _promotion(business, **extra) -> Promotion:  # type: ignore
    now = timezone.now()
    fields = {
        "name": "Fall glow",
        "type": Promotion.Type.PERCENTAGE,
        "value": Decimal("20"),
        "start_date": now - timedelta(days=1),
        "end_date": now + timedelta(days=30),
    }
    fields.update(extra)
    return Promotion.objects.create(business=business, **fields)


@pytest.mark.parametrize(
    "promo_type,value,subtotal,items,expected",
    [
        (Promotion.Type.PERCENTAGE, "15", "80.00", 1, "12.00"),
        (Promotion.Type.FIXED_AMOUNT, "25", "80.00", 1, "25.00"),
        (Promotion.Type.FIXED_AMOUNT, "25", "10.00", 1, "10.00"),
        (Promotion.Type.BOGO, "0", "60.00", 2, "30.00"),
        (Promotion.Type.BUNDLE, "10", "60.00", 2, "6.00"),
        (Promotion.Type.BUNDLE, "10", "60.00", 1, "0.00"),
        (Promotion.Type.PERCENTAGE, "33", "10.01", 1, "3.30"),
    ],
)
def test_calculate_discount(promo_type, value, subtotal, items, expected):
    promotion = Promotion(type=promo_type, value=Decimal(value))

    assert calculate_discount(promotion, Decimal(subtotal), items) == Decimal(expected)


@pytest.mark.django_db
class TestValidatePromotion:
    @pytest.fixture(autouse=True)
    def _setup(self, db):
        self.business = make_business()
        self.customer = make_customer()
        self.cart = Cart(subtotal=Decimal("100.00"), service_ids=[1])

    def _error(self, promotion, cart=None) -> str:  # type: ignore
        with pytest.raises(PromotionError) as exc:
            validate_promotion(promotion, self.customer, cart or self.cart)
        return str(exc.value)

    def test_inactive(self):
        assert self._error(_promotion(self.business, is_active=False)) == "Promotion is not active"

    def test_not_started(self):
        now = timezone.now()
        promotion = _promotion(self.business, start_date=now + timedelta(days=1), end_date=now + timedelta(days=2))
        assert self._error(promotion) == "Promotion has not started yet"

    def test_expired(self):
        now = timezone.now()
        promotion = _promotion(self.business, start_date=now - timedelta(days=5), end_date=now - timedelta(days=1))
        assert self._error(promotion) == "Promotion has expired"

    def test_usage_limit(self):
        promotion = _promotion(self.business, usage_limit=3, usage_count=3)
        assert self._error(promotion) == "Promotion usage limit reached"

    def test_per_customer_limit(self):
        promotion = _promotion(self.business, per_customer_limit=1)
        PromotionUsage.objects.create(
            promotion=promotion, user=self.customer, discount_amount=Decimal("5"), order_total=Decimal("50")
        )
        assert self._error(promotion) == "You have already used this promotion"

    def test_minimum_amount(self):
        promotion = _promotion(self.business, minimum_amount=Decimal("150"))
        assert self._error(promotion) == "Minimum purchase amount of $150.00 required"

    def test_minimum_items(self):
        promotion = _promotion(self.business, minimum_items=3)
        assert self._error(promotion) == "Minimum 3 items required"

    def test_first_time_only(self):
        make_booking(self.customer, make_service(self.business), status=Booking.Status.COMPLETED)
        promotion = _promotion(self.business, first_time_only=True)
        assert self._error(promotion) == "This promotion is only for first-time customers"

    def test_cancelled_history_still_counts_as_first_time(self):
        make_booking(self.customer, make_service(self.business), status=Booking.Status.CANCELLED)
        validate_promotion(_promotion(self.business, first_time_only=True), self.customer, self.cart)

    def test_specific_services_scope(self):
        service = make_service(self.business)
        promotion = _promotion(self.business, scope=Promotion.Scope.SPECIFIC_SERVICES)
        promotion.services.add(service)

        assert self._error(promotion) == "Promotion does not apply to these items"
        validate_promotion(promotion, self.customer, Cart(subtotal=Decimal("100"), service_ids=[service.id]))

    def test_all_products_scope_needs_products(self):
        promotion = _promotion(self.business, scope=Promotion.Scope.ALL_PRODUCTS)
        assert self._error(promotion) == "Promotion does not apply to these items"

    def test_checks_stop_at_first_failure(self):
        now = timezone.now()
        promotion = _promotion(
            self.business,
            is_active=False,
            start_date=now - timedelta(days=5),
            end_date=now - timedelta(days=1),
        )
        assert self._error(promotion) == "Promotion is not active"


@pytest.mark.django_db
class TestFindPromotion:
    @pytest.fixture(autouse=True)
    def _setup(self, db):
        self.business = make_business()
        self.customer = make_customer()
        self.cart = Cart(subtotal=Decimal("100.00"), service_ids=[1])

    def test_code_lookup_is_case_insensitive(self):
        _promotion(self.business, code="glow20")

        applied = find_promotion(self.business.id, self.customer, self.cart, code="Glow20")

        assert applied.discount_amount == Decimal("20.00")
        assert applied.final_amount == Decimal("80.00")

    def test_unknown_code_is_not_found(self):
        with pytest.raises(PromotionError) as exc:
            find_promotion(self.business.id, self.customer, self.cart, code="NOPE")

        assert exc.value.status_code == 404

    def test_code_from_other_business_is_unknown(self):
        _promotion(make_business(), code="ELSEWHERE")

        with pytest.raises(PromotionError):
            find_promotion(self.business.id, self.customer, self.cart, code="ELSEWHERE")

    def test_automatic_picks_highest_valid_value(self):
        _promotion(self.business, name="Big but closed", value=Decimal("50"), is_featured=True, is_active=False)
        _promotion(self.business, name="Medium", value=Decimal("30"), is_featured=True)
        _promotion(self.business, name="Small", value=Decimal("10"), is_featured=True)
        _promotion(self.business, name="Not featured", value=Decimal("40"))
        _promotion(self.business, name="Coded", value=Decimal("45"), is_featured=True, code="CODED")

        applied = find_promotion(self.business.id, self.customer, self.cart)

        assert applied.promotion.name == "Medium"

    def test_no_automatic_promotion(self):
        with pytest.raises(PromotionError, match="No promotions available"):
            find_promotion(self.business.id, self.customer, self.cart)


@pytest.mark.django_db
def test_record_usage_counts_and_revalidates():
    business = make_business()
    customer = make_customer()
    product = make_product(business)
    promotion = _promotion(business, type=Promotion.Type.FIXED_AMOUNT, value=Decimal("5"), usage_limit=1)
    cart = Cart(subtotal=Decimal("25.00"), product_ids=[product.id])

    usage = record_usage(promotion, customer, cart)

    promotion.refresh_from_db()
    assert usage.discount_amount == Decimal("5.00")
    assert promotion.usage_count == 1
    with pytest.raises(PromotionError, match="usage limit"):
        record_usage(promotion, make_customer(), cart)
