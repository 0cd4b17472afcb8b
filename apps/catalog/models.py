"""Catalog models: bookable services, retail products and stock movements."""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.text import slugify  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.businesses.models import Business


class Service(models.Model):
    """A bookable treatment with a fixed price and duration."""

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="services")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    duration = models.PositiveIntegerField(help_text=_("Duration in minutes."))
    category = models.CharField(max_length=100, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Service")
        verbose_name_plural = _("Services")
        ordering = ["business", "name"]
        indexes = [
            models.Index(fields=["business", "is_active"]),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(duration__gt=0), name="service_positive_duration"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.duration} min, ${self.price})"


class ProductCategory(models.Model):
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="product_categories")
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Product category")
        verbose_name_plural = _("Product categories")
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["business", "slug"], name="product_category_unique_slug"),
        ]

    def __str__(self) -> str:
        return self.name

    def save(self, *args, **kwargs):  # type: ignore
        if not self.slug:
            self.slug = slugify(self.name)[:120]
        super().save(*args, **kwargs)


class Product(models.Model):
    """Retail item sold by a business, optionally stock-tracked."""

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="products")
    category = models.ForeignKey(
        ProductCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="products",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    sku = models.CharField(max_length=64, blank=True, null=True)
    barcode = models.CharField(max_length=64, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0.00"))])
    compare_at_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    cost = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    brand = models.CharField(max_length=100, blank=True)
    tags = models.JSONField(default=list, blank=True)
    track_inventory = models.BooleanField(default=True)
    quantity = models.IntegerField(default=0)
    low_stock_alert = models.PositiveIntegerField(default=5)
    is_active = models.BooleanField(default=True)
    is_featured = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Product")
        verbose_name_plural = _("Products")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["business", "is_active"]),
        ]
        constraints = [
            models.UniqueConstraint(fields=["business", "sku"], name="product_unique_sku_per_business"),
        ]

    def __str__(self) -> str:
        return f"{self.name} (${self.price})"

    @property
    def is_low_stock(self) -> bool:
        return self.track_inventory and 0 < self.quantity <= self.low_stock_alert

    @property
    def is_out_of_stock(self) -> bool:
        return self.track_inventory and self.quantity <= 0

    def has_stock_for(self, quantity: int) -> bool:
        return not self.track_inventory or self.quantity >= quantity


class InventoryLog(models.Model):
    """Signed stock movement for a product."""

    class LogType(models.TextChoices):
        INITIAL = "INITIAL", _("Initial stock")
        SALE = "SALE", _("Sale")
        ADJUSTMENT = "ADJUSTMENT", _("Adjustment")
        RETURN = "RETURN", _("Return")

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="inventory_logs")
    type = models.CharField(max_length=12, choices=LogType.choices)
    quantity = models.IntegerField(help_text=_("Positive adds stock, negative removes it."))
    reason = models.CharField(max_length=255, blank=True)
    reference = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Inventory log")
        verbose_name_plural = _("Inventory logs")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.get_type_display()} {self.quantity:+d} for {self.product_id}"
