"""Serializers for product orders."""

from __future__ import annotations

from typing import Any

from rest_framework import serializers  # type: ignore

from apps.users.serializers import UserShortSerializer

from .models import Order, OrderItem


class OrderItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class OrderCreateSerializer(serializers.Serializer):
    business_id = serializers.IntegerField()
    items = OrderItemInputSerializer(many=True, allow_empty=False)
    fulfillment = serializers.ChoiceField(choices=Order.Fulfillment.choices, default=Order.Fulfillment.PICKUP)
    shipping_address = serializers.JSONField(required=False, allow_null=True)
    promo_code = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    customer_phone = serializers.CharField(required=False, allow_blank=True, default="", max_length=20)
    delivery_notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        if attrs["fulfillment"] == Order.Fulfillment.DELIVERY and not attrs.get("shipping_address"):
            raise serializers.ValidationError({"shipping_address": "Shipping address is required for delivery"})
        return attrs


class OrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.ReadOnlyField(source="product.name")

    class Meta:
        model = OrderItem
        fields = ["id", "product", "product_name", "quantity", "unit_price", "total"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    customer = UserShortSerializer(read_only=True)
    business_name = serializers.ReadOnlyField(source="business.business_name")
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer",
            "business",
            "business_name",
            "type",
            "status",
            "payment_status",
            "fulfillment",
            "shipping_address",
            "customer_email",
            "customer_phone",
            "delivery_notes",
            "items",
            "subtotal",
            "discount_amount",
            "delivery_fee",
            "total",
            "platform_fee",
            "stripe_fee",
            "business_payout",
            "promotion",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
