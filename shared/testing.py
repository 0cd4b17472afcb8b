"""Object builders shared by the app test suites."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from itertools import count
from typing import Any

from django.utils import timezone  # type: ignore

from apps.bookings.models import Booking
from apps.businesses.models import Availability, Business
from apps.catalog.models import Product, Service
from apps.users.models import User

PASSWORD = "Fresh-Start-2026!"

_sequence = count(1)


def make_customer(**extra: Any) -> User:
    n = next(_sequence)
    extra.setdefault("email", f"customer{n}@example.com")
    extra.setdefault("first_name", "Casey")
    return User.objects.create_user(password=PASSWORD, role=User.RoleChoices.CUSTOMER, **extra)


def make_business(owner: User | None = None, *, onboarded: bool = True, **extra: Any) -> Business:
    n = next(_sequence)
    if owner is None:
        owner = User.objects.create_user(
            email=f"owner{n}@example.com",
            password=PASSWORD,
            role=User.RoleChoices.BUSINESS_OWNER,
        )
    fields: dict[str, Any] = {
        "business_name": f"Studio {n}",
        "category": Business.Category.HAIR_SALON,
        "address": "12 Main St",
        "city": "Brooklyn",
        "state": "NY",
        "zip_code": "11201",
        "phone": "+17185550100",
        "email": owner.email,
    }
    if onboarded:
        fields.update(stripe_account_id=f"acct_test{n}", stripe_onboarded=True)
    fields.update(extra)
    return Business.objects.create(owner=owner, **fields)


def make_service(business: Business, **extra: Any) -> Service:
    extra.setdefault("name", "Silk Press")
    extra.setdefault("price", Decimal("100.00"))
    extra.setdefault("duration", 60)
    return Service.objects.create(business=business, **extra)


def make_product(business: Business, **extra: Any) -> Product:
    extra.setdefault("name", "Argan Oil")
    extra.setdefault("price", Decimal("25.00"))
    extra.setdefault("quantity", 10)
    return Product.objects.create(business=business, **extra)


def open_every_day(business: Business, start: time = time(9, 0), end: time = time(18, 0)) -> None:
    Availability.objects.bulk_create(
        Availability(business=business, day_of_week=day, start_time=start, end_time=end) for day in range(7)
    )


def local_dt(day: date, at: time) -> datetime:
    return timezone.make_aware(datetime.combine(day, at), timezone.get_default_timezone())


def make_booking(
    customer: User,
    service: Service,
    *,
    start: datetime | None = None,
    status: str = Booking.Status.CONFIRMED,
    payment_status: str = Booking.PaymentStatus.SUCCEEDED,
    **extra: Any,
) -> Booking:
    if start is None:
        start = local_dt(timezone.localdate() + timedelta(days=3), time(10, 0))
    price = service.price
    extra.setdefault("platform_fee", (price * Decimal("0.15")).quantize(Decimal("0.01")))
    extra.setdefault("stripe_fee", (price * Decimal("0.029") + Decimal("0.30")).quantize(Decimal("0.01")))
    extra.setdefault("business_payout", price - extra["platform_fee"] - extra["stripe_fee"])
    return Booking.objects.create(
        customer=customer,
        business=service.business,
        service=service,
        date=timezone.localtime(start).date(),
        start_time=start,
        end_time=start + timedelta(minutes=service.duration),
        status=status,
        payment_status=payment_status,
        total_price=price,
        **extra,
    )
