"""
CRM profile maintenance and customer metrics.

Profiles are derived from bookings: every non-cancelled booking counts as a
visit. ``build_profiles`` adds profiles for customers that lack one and
``refresh_customer_profile`` keeps one profile current after a booking
completes.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any

from django.db import transaction  # type: ignore
from django.db.models import Avg, Count, Max, Min, Sum  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.models import Booking
from apps.businesses.models import Business
from apps.notifications.services import send_email_notification, send_sms_notification
from shared.domain.value_objects import CENT

from .models import Communication, CustomerProfile

logger = logging.getLogger(__name__)

REGULAR_VISITS = 5
VIP_SPEND = Decimal("1000")
AT_RISK_DAYS = 90
AUTO_TAGS = ("regular", "new")


def _visits(business: Business):
    return Booking.objects.filter(business=business).exclude(status=Booking.Status.CANCELLED)


def _favorite_service_id(business: Business, user_id: int) -> int | None:
    row = (
        _visits(business)
        .filter(customer_id=user_id)
        .values("service_id")
        .annotate(times=Count("id"))
        .order_by("-times", "service_id")
        .first()
    )
    return row["service_id"] if row else None


def _apply_stats(profile: CustomerProfile, stats: dict[str, Any]) -> None:
    visits = stats["visits"] or 0
    spent = Decimal(stats["spent"] or 0)
    profile.total_visits = visits
    profile.total_spent = spent.quantize(CENT)
    profile.average_spent = (spent / visits).quantize(CENT) if visits else Decimal("0.00")
    profile.first_visit = stats["first"]
    profile.last_visit = stats["last"]
    custom_tags = [tag for tag in (profile.tags or []) if tag not in AUTO_TAGS]
    profile.tags = ["regular" if visits > REGULAR_VISITS else "new", *custom_tags]
    profile.is_vip = profile.is_vip or spent > VIP_SPEND


def build_profiles(business: Business) -> int:
    """Create profiles for customers with booking history but no profile yet."""
    profiled = CustomerProfile.objects.filter(business=business).values("user_id")
    rows = (
        _visits(business)
        .exclude(customer_id__in=profiled)
        .values("customer_id")
        .annotate(
            visits=Count("id"),
            spent=Sum("total_price"),
            first=Min("date"),
            last=Max("date"),
        )
    )
    created = 0
    with transaction.atomic():
        for row in rows:
            profile = CustomerProfile(
                business=business,
                user_id=row["customer_id"],
                favorite_service_id=_favorite_service_id(business, row["customer_id"]),
            )
            _apply_stats(profile, row)
            profile.save()
            created += 1

    if created:
        logger.info(f"Built {created} customer profiles for business {business.id}")
    return created


def refresh_customer_profile(business: Business, user) -> CustomerProfile:  # type: ignore
    """Recompute one customer's totals at a business."""
    stats = _visits(business).filter(customer=user).aggregate(
        visits=Count("id"),
        spent=Sum("total_price"),
        first=Min("date"),
        last=Max("date"),
    )
    profile, _ = CustomerProfile.objects.get_or_create(business=business, user=user)
    _apply_stats(profile, stats)
    profile.favorite_service_id = _favorite_service_id(business, user.id)
    profile.save()
    return profile


def _profile_summary(profile: CustomerProfile) -> dict[str, Any]:
    return {
        "id": profile.id,
        "user_id": profile.user_id,
        "name": profile.user.display_name,
        "email": profile.user.email,
        "total_visits": profile.total_visits,
        "total_spent": str(profile.total_spent),
        "average_spent": str(profile.average_spent),
        "last_visit": profile.last_visit.isoformat() if profile.last_visit else None,
        "is_vip": profile.is_vip,
    }


def customer_metrics(business: Business) -> dict[str, Any]:
    today = timezone.localdate()
    month_start = today.replace(day=1)
    profiles = CustomerProfile.objects.filter(business=business).select_related("user")

    totals = profiles.aggregate(revenue=Sum("total_spent"), average=Avg("total_spent"))
    top = profiles.order_by("-total_spent")[:5]
    at_risk = profiles.filter(
        last_visit__lt=today - timedelta(days=AT_RISK_DAYS),
        total_visits__gt=2,
    ).order_by("-total_spent")

    return {
        "total_customers": profiles.count(),
        "new_this_month": profiles.filter(first_visit__gte=month_start).count(),
        "total_revenue": str(Decimal(totals["revenue"] or 0).quantize(CENT)),
        "average_customer_value": str(Decimal(totals["average"] or 0).quantize(CENT)),
        "top_customers": [_profile_summary(p) for p in top],
        "at_risk_customers": [_profile_summary(p) for p in at_risk],
    }


def send_customer_message(
    profile: CustomerProfile,
    *,
    type: str = Communication.Type.NOTE,
    subject: str = "",
    content: str,
    staff=None,
) -> Communication:
    """Record a communication and deliver it when it is an email or SMS."""
    user = profile.user
    delivered = True
    if type == Communication.Type.EMAIL:
        delivered = send_email_notification(
            user.email,
            subject or f"Message from {profile.business.business_name}",
            None,
            {"message": content},
        )
    elif type == Communication.Type.SMS:
        delivered = bool(user.phone) and send_sms_notification(user.phone, content)

    communication = Communication.objects.create(
        business=profile.business,
        customer=profile,
        staff=staff,
        type=type,
        subject=subject,
        content=content,
        status=Communication.Status.SENT if delivered else Communication.Status.FAILED,
        sent_at=timezone.now() if delivered and type != Communication.Type.NOTE else None,
    )
    if not delivered:
        logger.warning(f"{type} to customer profile {profile.id} could not be delivered")
    return communication
