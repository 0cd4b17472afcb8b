"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Booking

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (scheduled by Celery Beat)
# ============================================================================

@shared_task(name="bookings.expire_unpaid_bookings")
def expire_unpaid_bookings() -> dict[str, int]:
    """
    Release slots held by bookings that were never paid.

    A PENDING booking whose payment has not succeeded within
    BOOKING_PAYMENT_TIMEOUT_MINUTES is cancelled with a FAILED payment and
    its PaymentIntent is voided on Stripe.

    Returns:
        dict: {"expired": number of cancelled bookings}
    """
    from apps.payments.stripe_client import PaymentGatewayError, StripeGateway

    from .services import pending_payment_cutoff

    now = timezone.now()
    expired_count = 0

    stale_bookings = Booking.objects.filter(
        status=Booking.Status.PENDING,
        payment_status=Booking.PaymentStatus.PENDING,
        created_at__lte=pending_payment_cutoff(),
    )
    gateway = StripeGateway()

    for booking in stale_bookings:
        try:
            if booking.stripe_payment_intent_id:
                try:
                    gateway.cancel_payment_intent(booking.stripe_payment_intent_id)
                except PaymentGatewayError as e:
                    # A late success is reconciled by the payment webhook.
                    logger.warning(f"Could not cancel payment intent for booking {booking.id}: {e}")
            booking.status = Booking.Status.CANCELLED
            booking.payment_status = Booking.PaymentStatus.FAILED
            booking.cancelled_at = now
            booking.append_note("Cancellation reason: payment not completed in time")
            booking.save(update_fields=["status", "payment_status", "cancelled_at", "notes", "updated_at"])
            expired_count += 1
            logger.info(f"Booking {booking.id} expired: payment not completed")
        except Exception as e:
            logger.error(f"Error expiring booking {booking.id}: {e}", exc_info=True)

    if expired_count > 0:
        logger.info(f"Expired {expired_count} unpaid bookings")

    return {"expired": expired_count}


@shared_task(name="bookings.complete_finished_bookings")
def complete_finished_bookings() -> dict[str, int]:
    """
    Mark confirmed appointments that ended more than two hours ago as COMPLETED.

    Returns:
        dict: {"completed": number of completed bookings}
    """
    from apps.customers.services import refresh_customer_profile

    cutoff = timezone.now() - timedelta(hours=2)
    completed_count = 0

    finished = Booking.objects.filter(
        status=Booking.Status.CONFIRMED,
        end_time__lte=cutoff,
    ).select_related("business", "customer")

    for booking in finished:
        try:
            booking.status = Booking.Status.COMPLETED
            booking.save(update_fields=["status", "updated_at"])
            refresh_customer_profile(booking.business, booking.customer)
            completed_count += 1
            logger.info(f"Booking {booking.id} completed automatically")
        except Exception as e:
            logger.error(f"Error completing booking {booking.id}: {e}", exc_info=True)

    if completed_count > 0:
        logger.info(f"Completed {completed_count} bookings")

    return {"completed": completed_count}


@shared_task(name="bookings.send_upcoming_booking_reminders")
def send_upcoming_booking_reminders() -> dict[str, int]:
    """
    Remind customers about confirmed appointments in the next 24 hours.

    Each booking is reminded once; ``reminder_sent_at`` records it.

    Returns:
        dict: {"sent": number of reminders sent}
    """
    now = timezone.now()
    sent_count = 0

    upcoming = Booking.objects.filter(
        status=Booking.Status.CONFIRMED,
        start_time__gt=now,
        start_time__lte=now + timedelta(hours=24),
        reminder_sent_at__isnull=True,
    )

    for booking in upcoming:
        try:
            notify_booking_reminder.delay(booking.id)
            booking.reminder_sent_at = now
            booking.save(update_fields=["reminder_sent_at"])
            sent_count += 1
        except Exception as e:
            logger.error(f"Error sending reminder for booking {booking.id}: {e}", exc_info=True)

    if sent_count > 0:
        logger.info(f"Sent {sent_count} booking reminders")

    return {"sent": sent_count}


# ============================================================================
# NOTIFICATION TASKS
# ============================================================================

def _load(booking_id: int) -> Booking | None:
    try:
        return Booking.objects.select_related("customer", "business", "business__owner", "service", "staff").get(
            id=booking_id
        )
    except Booking.DoesNotExist:
        logger.error(f"Booking {booking_id} not found for notification")
        return None


@shared_task(name="bookings.notify_booking_confirmed")
def notify_booking_confirmed(booking_id: int) -> bool:
    """Confirmation and receipt to the customer, heads-up to the business owner."""
    booking = _load(booking_id)
    if booking is None:
        return False

    from apps.notifications.models import NotificationTemplate
    from apps.notifications.services import (
        create_in_app_notification,
        send_booking_confirmation_email,
        send_booking_sms,
        send_payment_receipt_email,
    )

    send_booking_confirmation_email(booking)
    send_payment_receipt_email(booking)
    send_booking_sms(booking, NotificationTemplate.Type.BOOKING_CONFIRMATION)
    create_in_app_notification(
        user=booking.customer,
        title="Booking confirmed",
        message=(
            f"Your {booking.service.name} at {booking.business.business_name} on "
            f"{timezone.localtime(booking.start_time):%b %d at %I:%M %p} is confirmed."
        ),
    )
    create_in_app_notification(
        user=booking.business.owner,
        title="New booking",
        message=(
            f"{booking.customer.display_name} booked {booking.service.name} for "
            f"{timezone.localtime(booking.start_time):%b %d at %I:%M %p}."
        ),
    )

    logger.info(f"[NOTIFICATION] Booking confirmed notifications sent for booking {booking.id}")
    return True


@shared_task(name="bookings.notify_booking_reminder")
def notify_booking_reminder(booking_id: int) -> bool:
    booking = _load(booking_id)
    if booking is None:
        return False

    from apps.notifications.models import NotificationTemplate
    from apps.notifications.services import (
        create_in_app_notification,
        send_booking_reminder_email,
        send_booking_sms,
    )

    send_booking_reminder_email(booking)
    send_booking_sms(booking, NotificationTemplate.Type.BOOKING_REMINDER)
    create_in_app_notification(
        user=booking.customer,
        title="Upcoming appointment",
        message=(
            f"Reminder: {booking.service.name} at {booking.business.business_name} "
            f"{timezone.localtime(booking.start_time):%b %d at %I:%M %p}."
        ),
    )
    logger.info(f"[NOTIFICATION] Reminder sent for booking {booking.id}")
    return True


@shared_task(name="bookings.notify_booking_cancelled")
def notify_booking_cancelled(booking_id: int) -> bool:
    booking = _load(booking_id)
    if booking is None:
        return False

    from apps.notifications.models import NotificationTemplate
    from apps.notifications.services import (
        create_in_app_notification,
        send_booking_cancellation_email,
        send_booking_sms,
    )

    send_booking_cancellation_email(booking)
    send_booking_sms(booking, NotificationTemplate.Type.BOOKING_CANCELLED)
    create_in_app_notification(
        user=booking.business.owner,
        title="Booking cancelled",
        message=f"Booking #{booking.id} ({booking.service.name}) was cancelled.",
    )
    logger.info(f"[NOTIFICATION] Cancellation sent for booking {booking.id}")
    return True


@shared_task(name="bookings.notify_booking_refunded")
def notify_booking_refunded(booking_id: int) -> bool:
    booking = _load(booking_id)
    if booking is None:
        return False

    from apps.notifications.services import create_in_app_notification, send_refund_processed_email

    send_refund_processed_email(booking)
    create_in_app_notification(
        user=booking.customer,
        title="Refund processed",
        message=f"${booking.total_price} for booking #{booking.id} is on its way back to your card.",
    )
    logger.info(f"[NOTIFICATION] Refund notice sent for booking {booking.id}")
    return True
