"""Promotion models."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.businesses.models import Business
from apps.catalog.models import Product, Service


class Promotion(models.Model):
    """Discount offered by a business, redeemed by code or applied automatically."""

    class Type(models.TextChoices):
        PERCENTAGE = "PERCENTAGE", _("Percentage")
        FIXED_AMOUNT = "FIXED_AMOUNT", _("Fixed amount")
        BOGO = "BOGO", _("Buy one get one")
        BUNDLE = "BUNDLE", _("Bundle")

    class Scope(models.TextChoices):
        ENTIRE_PURCHASE = "ENTIRE_PURCHASE", _("Entire purchase")
        ALL_SERVICES = "ALL_SERVICES", _("All services")
        ALL_PRODUCTS = "ALL_PRODUCTS", _("All products")
        SPECIFIC_SERVICES = "SPECIFIC_SERVICES", _("Specific services")
        SPECIFIC_PRODUCTS = "SPECIFIC_PRODUCTS", _("Specific products")

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="promotions")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    code = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text=_("Uppercase. Leave empty for an automatic promotion."),
    )
    type = models.CharField(max_length=16, choices=Type.choices)
    value = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    scope = models.CharField(max_length=20, choices=Scope.choices, default=Scope.ENTIRE_PURCHASE)
    services = models.ManyToManyField(Service, blank=True, related_name="promotions")
    products = models.ManyToManyField(Product, blank=True, related_name="promotions")
    minimum_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    minimum_items = models.PositiveIntegerField(null=True, blank=True)
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    per_customer_limit = models.PositiveIntegerField(null=True, blank=True)
    first_time_only = models.BooleanField(default=False)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    is_active = models.BooleanField(default=True)
    is_featured = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Promotion")
        verbose_name_plural = _("Promotions")
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["business", "code"], name="promotion_unique_code_per_business"),
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F("start_date")),
                name="promotion_valid_period",
            ),
        ]
        indexes = [
            models.Index(fields=["business", "is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.code or 'automatic'})"

    def save(self, *args, **kwargs):  # type: ignore
        self.code = self.code.strip().upper() if self.code else None
        super().save(*args, **kwargs)


class PromotionUsage(models.Model):
    promotion = models.ForeignKey(Promotion, on_delete=models.CASCADE, related_name="usages")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="promotion_usages",
    )
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2)
    order_total = models.DecimalField(max_digits=10, decimal_places=2)
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="promotion_usages",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="promotion_usages",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Promotion usage")
        verbose_name_plural = _("Promotion usages")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.promotion_id} used by {self.user_id} (-${self.discount_amount})"
