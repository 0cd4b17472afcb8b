"""Serializers for promotions."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.db import transaction  # type: ignore
from rest_framework import serializers  # type: ignore

from apps.catalog.models import Product, Service

from .models import Promotion


class PromotionSerializer(serializers.ModelSerializer):
    """Owner CRUD for promotions. Codes are stored uppercase."""

    service_ids = serializers.PrimaryKeyRelatedField(
        source="services",
        many=True,
        queryset=Service.objects.all(),
        required=False,
    )
    product_ids = serializers.PrimaryKeyRelatedField(
        source="products",
        many=True,
        queryset=Product.objects.all(),
        required=False,
    )

    class Meta:
        model = Promotion
        fields = [
            "id",
            "name",
            "description",
            "code",
            "type",
            "value",
            "scope",
            "service_ids",
            "product_ids",
            "minimum_amount",
            "minimum_items",
            "usage_limit",
            "usage_count",
            "per_customer_limit",
            "first_time_only",
            "start_date",
            "end_date",
            "is_active",
            "is_featured",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "usage_count", "created_at", "updated_at"]
        validators: list = []

    def _business(self):
        if self.instance is not None:
            return self.instance.business
        return self.context["business"]

    def validate_code(self, value: str | None) -> str | None:
        if not value:
            return None
        value = value.strip().upper()
        qs = Promotion.objects.filter(business=self._business(), code=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Promo code already exists")
        return value

    def validate_service_ids(self, value):  # type: ignore
        business = self._business()
        if any(service.business_id != business.id for service in value):
            raise serializers.ValidationError("Services must belong to your business.")
        return value

    def validate_product_ids(self, value):  # type: ignore
        business = self._business()
        if any(product.business_id != business.id for product in value):
            raise serializers.ValidationError("Products must belong to your business.")
        return value

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        promo_type = attrs.get("type", getattr(self.instance, "type", None))
        value = attrs.get("value", getattr(self.instance, "value", None))
        if promo_type in (Promotion.Type.PERCENTAGE, Promotion.Type.BUNDLE) and value is not None:
            if not Decimal("1") <= value <= Decimal("100"):
                raise serializers.ValidationError({"value": "Percentage value must be between 1 and 100"})

        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and end <= start:
            raise serializers.ValidationError({"end_date": "End date must be after start date"})
        return attrs

    @transaction.atomic
    def create(self, validated_data: dict[str, Any]) -> Promotion:
        validated_data["business"] = self.context["business"]
        return super().create(validated_data)


class CartSerializer(serializers.Serializer):
    code = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    business_id = serializers.IntegerField()
    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"))
    service_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    product_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    item_count = serializers.IntegerField(required=False, min_value=0, default=1)


class PromotionUseSerializer(serializers.Serializer):
    promotion_id = serializers.IntegerField()
    booking_id = serializers.IntegerField(required=False, allow_null=True)
    order_id = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        if not attrs.get("booking_id") and not attrs.get("order_id"):
            raise serializers.ValidationError("Either booking_id or order_id is required")
        return attrs
