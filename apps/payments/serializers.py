"""Serializers for payment endpoints."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers  # type: ignore


class FeePreviewQuerySerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))
