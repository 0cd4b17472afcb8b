"""Booking domain models for Glamfric."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Booking(models.Model):
    """Appointment for one service at a business, paid up front through Stripe."""

    class Status(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        CONFIRMED = "CONFIRMED", _("Confirmed")
        COMPLETED = "COMPLETED", _("Completed")
        CANCELLED = "CANCELLED", _("Cancelled")
        NO_SHOW = "NO_SHOW", _("No show")

    class PaymentStatus(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        SUCCEEDED = "SUCCEEDED", _("Succeeded")
        FAILED = "FAILED", _("Failed")
        REFUNDED = "REFUNDED", _("Refunded")

    # Statuses that hold a time slot.
    BLOCKING_STATUSES = (Status.PENDING, Status.CONFIRMED)

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    business = models.ForeignKey(
        "businesses.Business",
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    service = models.ForeignKey(
        "catalog.Service",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    staff = models.ForeignKey(
        "staff.Staff",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="bookings",
    )
    date = models.DateField()
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.PENDING)
    payment_status = models.CharField(
        max_length=12,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    total_price = models.DecimalField(max_digits=10, decimal_places=2)
    platform_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    stripe_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    business_payout = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, db_index=True)
    notes = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    reminder_sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-start_time"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F("start_time")),
                name="booking_valid_time_range",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "date", "status"]),
            models.Index(fields=["customer", "status"]),
            models.Index(fields=["status", "payment_status"]),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.pk} {self.business_id} {self.start_time:%Y-%m-%d %H:%M}"

    @property
    def hours_until_start(self) -> float:
        return (self.start_time - timezone.now()).total_seconds() / 3600

    def is_within_cancellation_window(self) -> bool:
        """True when it is too late for the customer to cancel."""
        return self.hours_until_start < settings.BOOKING_CANCELLATION_WINDOW_HOURS

    def append_note(self, text: str) -> None:
        self.notes = f"{self.notes}\n{text}".strip() if self.notes else text
