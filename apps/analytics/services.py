"""
Revenue and booking aggregates for the business dashboard.

Only paid bookings (payment SUCCEEDED) count toward revenue. Periods are
windowed on ``created_at`` in the platform timezone; weeks start on Monday.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from django.db.models import Count, Sum  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.models import Booking
from apps.businesses.models import Business
from shared.domain.value_objects import CENT

ZERO = Decimal("0.00")


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _previous_month_start(month_start: datetime) -> datetime:
    return _month_start(month_start - timedelta(days=1))


def _money(value: Decimal | None) -> str:
    return str((value or ZERO).quantize(CENT))


def month_over_month_growth(this_month: Decimal, last_month: Decimal) -> float:
    if last_month > 0:
        return round(float((this_month - last_month) / last_month * 100), 2)
    return 100.0 if this_month > 0 else 0.0


def business_analytics(business: Business, now: datetime | None = None) -> dict[str, Any]:
    now = timezone.localtime(now or timezone.now())
    this_month_start = _month_start(now)
    last_month_start = _previous_month_start(this_month_start)
    week_start = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)

    paid = Booking.objects.filter(business=business, payment_status=Booking.PaymentStatus.SUCCEEDED)

    this_month = paid.filter(created_at__gte=this_month_start).aggregate(
        payout=Sum("business_payout"),
        gross=Sum("total_price"),
        platform=Sum("platform_fee"),
        stripe=Sum("stripe_fee"),
    )
    last_month_payout = paid.filter(
        created_at__gte=last_month_start,
        created_at__lt=this_month_start,
    ).aggregate(payout=Sum("business_payout"))["payout"] or ZERO
    this_week_payout = paid.filter(created_at__gte=week_start).aggregate(
        payout=Sum("business_payout")
    )["payout"] or ZERO
    this_month_payout = this_month["payout"] or ZERO

    recent = paid.select_related("customer", "service").order_by("-created_at")[:10]
    top_services = (
        paid.values("service_id", "service__name")
        .annotate(revenue=Sum("business_payout"), bookings=Count("id"))
        .order_by("-revenue")[:5]
    )

    return {
        "revenue": {
            "this_month": _money(this_month_payout),
            "last_month": _money(last_month_payout),
            "this_week": _money(this_week_payout),
            "month_over_month_growth": month_over_month_growth(this_month_payout, last_month_payout),
        },
        "this_month": {
            "gross": _money(this_month["gross"]),
            "platform_fees": _money(this_month["platform"]),
            "stripe_fees": _money(this_month["stripe"]),
            "net": _money(this_month_payout),
        },
        "bookings": {
            "total": paid.count(),
            "completed": paid.filter(status=Booking.Status.COMPLETED).count(),
            "upcoming": paid.filter(status=Booking.Status.CONFIRMED, start_time__gt=now).count(),
        },
        "recent_transactions": [
            {
                "id": booking.id,
                "customer": booking.customer.display_name,
                "service": booking.service.name,
                "amount": _money(booking.total_price),
                "payout": _money(booking.business_payout),
                "status": booking.status,
                "created_at": booking.created_at.isoformat(),
            }
            for booking in recent
        ],
        "top_services": [
            {
                "service_id": row["service_id"],
                "name": row["service__name"],
                "revenue": _money(row["revenue"]),
                "bookings": row["bookings"],
            }
            for row in top_services
        ],
    }


def platform_overview() -> dict[str, Any]:
    paid = Booking.objects.filter(payment_status=Booking.PaymentStatus.SUCCEEDED)
    totals = paid.aggregate(gross=Sum("total_price"), fees=Sum("platform_fee"))
    return {
        "businesses": Business.objects.count(),
        "active_businesses": Business.objects.filter(is_active=True).count(),
        "bookings": Booking.objects.count(),
        "paid_bookings": paid.count(),
        "gross_volume": _money(totals["gross"]),
        "platform_fee_revenue": _money(totals["fees"]),
    }
