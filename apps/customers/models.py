"""Customer relationship records kept per business."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class CustomerProfile(models.Model):
    """What a business knows about one of its customers."""

    business = models.ForeignKey(
        "businesses.Business",
        on_delete=models.CASCADE,
        related_name="customer_profiles",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="customer_profiles",
    )
    total_visits = models.PositiveIntegerField(default=0)
    total_spent = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    average_spent = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    first_visit = models.DateField(null=True, blank=True)
    last_visit = models.DateField(null=True, blank=True)
    favorite_service = models.ForeignKey(
        "catalog.Service",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    tags = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)
    is_vip = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Customer profile")
        verbose_name_plural = _("Customer profiles")
        ordering = ["-last_visit"]
        constraints = [
            models.UniqueConstraint(fields=["business", "user"], name="customer_profile_unique_per_business"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} at {self.business_id} ({self.total_visits} visits)"


class Communication(models.Model):
    """A note, email or SMS exchanged with a customer."""

    class Type(models.TextChoices):
        NOTE = "NOTE", _("Note")
        EMAIL = "EMAIL", _("Email")
        SMS = "SMS", _("SMS")

    class Status(models.TextChoices):
        SENT = "SENT", _("Sent")
        FAILED = "FAILED", _("Failed")
        DRAFT = "DRAFT", _("Draft")

    business = models.ForeignKey(
        "businesses.Business",
        on_delete=models.CASCADE,
        related_name="communications",
    )
    # Empty for test sends from the notification settings page.
    customer = models.ForeignKey(
        CustomerProfile,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="communications",
    )
    staff = models.ForeignKey(
        "staff.Staff",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="communications",
    )
    type = models.CharField(max_length=5, choices=Type.choices, default=Type.NOTE)
    subject = models.CharField(max_length=255, blank=True)
    content = models.TextField()
    status = models.CharField(max_length=6, choices=Status.choices, default=Status.SENT)
    sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Communication")
        verbose_name_plural = _("Communications")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.type} to {self.customer_id}: {self.subject or self.content[:30]}"
