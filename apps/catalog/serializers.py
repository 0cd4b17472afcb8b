"""Serializers for services and products."""

from __future__ import annotations

from typing import Any

from django.db import transaction  # type: ignore
from rest_framework import serializers  # type: ignore

from .models import InventoryLog, Product, ProductCategory, Service


class ServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = [
            "id",
            "business",
            "name",
            "description",
            "price",
            "duration",
            "category",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "business", "created_at", "updated_at"]
        extra_kwargs = {
            "price": {"required": True},
            "duration": {"required": True},
        }

    def validate_duration(self, value: int) -> int:
        if value is None or value <= 0:
            raise serializers.ValidationError("Duration must be greater than zero.")
        return value


class ProductCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductCategory
        fields = ["id", "name", "slug", "created_at"]
        read_only_fields = ["id", "created_at"]
        extra_kwargs = {"slug": {"required": False}}


class ProductSerializer(serializers.ModelSerializer):
    """Product read/write serializer; stock changes are journaled in InventoryLog."""

    category_name = serializers.CharField(source="category.name", read_only=True, default=None)
    is_low_stock = serializers.ReadOnlyField()
    is_out_of_stock = serializers.ReadOnlyField()

    class Meta:
        model = Product
        fields = [
            "id",
            "business",
            "category",
            "category_name",
            "name",
            "description",
            "sku",
            "barcode",
            "price",
            "compare_at_price",
            "cost",
            "brand",
            "tags",
            "track_inventory",
            "quantity",
            "low_stock_alert",
            "is_active",
            "is_featured",
            "is_low_stock",
            "is_out_of_stock",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "business", "created_at", "updated_at"]
        # Uniqueness of the SKU per business is checked in validate_sku.
        validators: list = []

    def _business(self):
        if self.instance is not None:
            return self.instance.business
        return self.context["business"]

    def validate_sku(self, value: str | None) -> str | None:
        if not value:
            return None
        qs = Product.objects.filter(business=self._business(), sku=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("A product with this SKU already exists.")
        return value

    def validate_category(self, value):  # type: ignore
        if value is not None and value.business_id != self._business().id:
            raise serializers.ValidationError("Category not found.")
        return value

    def validate_quantity(self, value: int) -> int:
        if value < 0:
            raise serializers.ValidationError("Quantity cannot be negative.")
        return value

    @transaction.atomic
    def create(self, validated_data: dict[str, Any]) -> Product:
        validated_data["business"] = self.context["business"]
        product = super().create(validated_data)
        if product.track_inventory and product.quantity > 0:
            InventoryLog.objects.create(
                product=product,
                type=InventoryLog.LogType.INITIAL,
                quantity=product.quantity,
                reason="Initial stock",
            )
        return product

    @transaction.atomic
    def update(self, instance: Product, validated_data: dict[str, Any]) -> Product:
        previous_quantity = instance.quantity
        product = super().update(instance, validated_data)
        delta = product.quantity - previous_quantity
        if "quantity" in validated_data and delta:
            InventoryLog.objects.create(
                product=product,
                type=InventoryLog.LogType.ADJUSTMENT,
                quantity=delta,
                reason="Manual adjustment",
            )
        return product
