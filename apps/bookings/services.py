"""Domain services for booking workflows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

from django.conf import settings  # type: ignore
from django.db import transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.businesses.models import Availability, Business, TimeOff
from apps.catalog.models import Service
from apps.payments.fees import FeeBreakdown, calculate_fees
from apps.payments.stripe_client import PaymentGatewayError, StripeGateway
from shared.domain.value_objects import TimeRange

from .models import Booking

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "This time slot is no longer available"


class BookingConflictError(Exception):
    """Raised when the requested slot overlaps an active booking."""


class BookingActionError(Exception):
    """Raised when a booking cannot move to the requested state."""


@dataclass
class BookingCheckout:
    booking: Booking
    client_secret: str
    fees: FeeBreakdown

    def as_response(self) -> dict[str, Any]:
        return {
            "booking_id": self.booking.id,
            "client_secret": self.client_secret,
            "amount": str(self.booking.total_price),
            "fees": {
                "platform": str(self.fees.platform_fee),
                "stripe": str(self.fees.stripe_fee),
                "business": str(self.fees.business_payout),
            },
        }


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def local_datetime(day: date, at: time) -> datetime:
    """Combine a date and wall-clock time in the platform timezone."""
    return timezone.make_aware(datetime.combine(day, at), timezone.get_default_timezone())


def ensure_slot_is_available(
    business: Business,
    day: date,
    start: datetime,
    end: datetime,
    *,
    exclude_booking_id=None,
) -> None:
    """Raise BookingConflictError if [start, end) overlaps a PENDING/CONFIRMED booking."""

    bookings_qs = Booking.objects.filter(
        business=business,
        date=day,
        status__in=Booking.BLOCKING_STATUSES,
        start_time__lt=end,
        end_time__gt=start,
    )
    if exclude_booking_id is not None:
        bookings_qs = bookings_qs.exclude(pk=exclude_booking_id)

    bookings_qs = _lock_queryset_if_possible(bookings_qs)

    if bookings_qs.exists():
        raise BookingConflictError(SLOT_TAKEN_MESSAGE)


def get_day_availability(business: Business, day: date, service: Service | None = None) -> dict[str, Any]:
    """
    Describe what a customer can book on ``day``.

    Full-day time off and days without opening hours come back as closed.
    Otherwise ``booked_slots`` lists HH:MM start times that are taken,
    including every slot covered by partial time off.
    """
    time_off = list(TimeOff.objects.filter(business=business, date=day))
    full_day = next((entry for entry in time_off if entry.is_full_day), None)
    if full_day is not None:
        return {
            "booked_slots": [],
            "is_closed_day": True,
            "reason": full_day.reason or "Business is closed",
        }

    availability = Availability.objects.filter(
        business=business,
        day_of_week=Availability.weekday_for(day),
        is_active=True,
    ).first()
    if availability is None:
        return {
            "booked_slots": [],
            "is_closed_day": True,
            "reason": "Business is closed on this day",
        }

    tz = timezone.get_default_timezone()
    starts = Booking.objects.filter(
        business=business,
        date=day,
        status__in=Booking.BLOCKING_STATUSES,
    ).values_list("start_time", flat=True)
    booked_slots = [timezone.localtime(start, tz).strftime("%H:%M") for start in starts]

    for entry in time_off:
        if entry.start_time is None or entry.end_time is None:
            continue
        window = TimeRange(local_datetime(day, entry.start_time), local_datetime(day, entry.end_time))
        booked_slots.extend(slot.strftime("%H:%M") for slot in window.slots(settings.BOOKING_SLOT_MINUTES))

    data: dict[str, Any] = {
        "booked_slots": sorted(set(booked_slots)),
        "is_closed_day": False,
        "availability": {
            "start_time": availability.start_time.strftime("%H:%M"),
            "end_time": availability.end_time.strftime("%H:%M"),
        },
    }
    if service is not None:
        data["service_duration"] = service.duration
    return data


def create_booking(
    customer,
    *,
    business_id: int,
    service_id: int,
    day: date,
    at: time,
    staff_id: int | None = None,
    notes: str = "",
    gateway: StripeGateway | None = None,
) -> BookingCheckout:
    """Hold a slot and open a destination-charge PaymentIntent for it."""

    service = (
        Service.objects.select_related("business")
        .filter(pk=service_id, business_id=business_id, is_active=True, business__is_active=True)
        .first()
    )
    if service is None:
        raise BookingActionError("Service not found")

    business = service.business
    if not business.can_accept_payments:
        raise BookingActionError("Business is not set up to accept payments")

    staff = None
    if staff_id is not None:
        staff = business.staff.filter(pk=staff_id, is_active=True).first()
        if staff is None:
            raise BookingActionError("Staff member not found")

    slot = TimeRange.from_duration(local_datetime(day, at), service.duration)
    if slot.start <= timezone.now():
        raise BookingActionError("Booking time must be in the future")

    fees = calculate_fees(service.price)
    gateway = gateway or StripeGateway()

    # The slot is held by a PENDING row before Stripe is contacted so no lock
    # is kept open across network calls.
    with transaction.atomic():
        ensure_slot_is_available(business, day, slot.start, slot.end)
        booking = Booking.objects.create(
            customer=customer,
            business=business,
            service=service,
            staff=staff,
            date=day,
            start_time=slot.start,
            end_time=slot.end,
            status=Booking.Status.PENDING,
            payment_status=Booking.PaymentStatus.PENDING,
            total_price=service.price,
            platform_fee=fees.platform_fee,
            stripe_fee=fees.stripe_fee,
            business_payout=fees.business_payout,
            notes=notes or "",
        )

    try:
        customer_id = gateway.get_or_create_customer(customer)
        intent = gateway.create_destination_payment_intent(
            amount_cents=fees.amount_cents,
            application_fee_cents=fees.platform_fee_cents,
            destination_account=business.stripe_account_id,
            customer_id=customer_id,
            description=f"{service.name} at {business.business_name}",
            metadata={
                "type": "booking",
                "booking_id": str(booking.id),
                "business_id": str(business.id),
                "service_id": str(service.id),
                "user_id": str(customer.id),
                "date": day.isoformat(),
                "time": at.strftime("%H:%M"),
                "service_name": service.name,
                "business_name": business.business_name,
            },
        )
    except PaymentGatewayError:
        booking.delete()
        raise

    booking.stripe_payment_intent_id = intent.id
    booking.save(update_fields=["stripe_payment_intent_id", "updated_at"])

    logger.info(f"Booking {booking.id} created for user {customer.id} at business {business.id}")
    return BookingCheckout(booking=booking, client_secret=intent.client_secret, fees=fees)


def is_business_owner_of(booking: Booking, user) -> bool:  # type: ignore
    return booking.business.owner_id == getattr(user, "id", None)


def cancel_booking(booking: Booking, user, reason: str = "") -> str:  # type: ignore
    """Cancel a booking and return the message shown to the caller."""
    acting_as_customer = booking.customer_id == user.id and not is_business_owner_of(booking, user)

    if booking.status == Booking.Status.CANCELLED:
        raise BookingActionError("Booking is already cancelled")
    if booking.status == Booking.Status.COMPLETED:
        raise BookingActionError("Completed bookings cannot be cancelled")
    if acting_as_customer and booking.is_within_cancellation_window():
        raise BookingActionError(
            f"Bookings must be cancelled at least {settings.BOOKING_CANCELLATION_WINDOW_HOURS} hours in advance"
        )

    if reason:
        booking.append_note(f"Cancellation reason: {reason}")
    booking.status = Booking.Status.CANCELLED
    booking.cancelled_at = timezone.now()
    booking.save(update_fields=["status", "notes", "cancelled_at", "updated_at"])
    logger.info(f"Booking {booking.id} cancelled by user {user.id}")

    if booking.payment_status == Booking.PaymentStatus.SUCCEEDED and acting_as_customer:
        return "Booking cancelled. Please request a refund if applicable."
    return "Booking cancelled successfully."


def refund_booking(booking: Booking, user, gateway: StripeGateway | None = None):  # type: ignore
    """Refund a paid booking through Stripe and cancel it."""
    acting_as_customer = booking.customer_id == user.id and not is_business_owner_of(booking, user)

    if booking.payment_status != Booking.PaymentStatus.SUCCEEDED or not booking.stripe_payment_intent_id:
        raise BookingActionError("Booking has not been paid or is already refunded")
    if acting_as_customer and booking.is_within_cancellation_window():
        raise BookingActionError(
            f"Refunds must be requested at least {settings.BOOKING_CANCELLATION_WINDOW_HOURS} hours in advance"
        )

    refund = (gateway or StripeGateway()).create_refund(booking.stripe_payment_intent_id)

    booking.payment_status = Booking.PaymentStatus.REFUNDED
    booking.status = Booking.Status.CANCELLED
    booking.cancelled_at = booking.cancelled_at or timezone.now()
    booking.save(update_fields=["payment_status", "status", "cancelled_at", "updated_at"])
    logger.info(f"Booking {booking.id} refunded ({refund.id}) by user {user.id}")
    return refund


def complete_booking(booking: Booking) -> Booking:
    """Mark a confirmed appointment as done and refresh the customer's CRM profile."""
    if booking.status != Booking.Status.CONFIRMED:
        raise BookingActionError("Only confirmed bookings can be completed")

    booking.status = Booking.Status.COMPLETED
    booking.save(update_fields=["status", "updated_at"])

    from apps.customers.services import refresh_customer_profile

    refresh_customer_profile(booking.business, booking.customer)
    return booking


def pending_payment_cutoff() -> datetime:
    return timezone.now() - timedelta(minutes=settings.BOOKING_PAYMENT_TIMEOUT_MINUTES)
