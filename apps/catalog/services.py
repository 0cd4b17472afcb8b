"""Catalog metrics."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, Sum  # type: ignore
from django.db.models.functions import Coalesce  # type: ignore

from .models import Product


def product_metrics(business) -> dict[str, Any]:
    """Inventory summary over the business's active products."""
    products = Product.objects.filter(business=business, is_active=True)

    unit_value = Coalesce(F("cost"), F("price"))
    stock_value = ExpressionWrapper(unit_value * F("quantity"), output_field=DecimalField(max_digits=14, decimal_places=2))

    totals = products.aggregate(
        total_products=Count("id"),
        total_value=Sum(stock_value),
        low_stock_count=Count(
            "id",
            filter=Q(track_inventory=True, quantity__gt=0, quantity__lte=F("low_stock_alert")),
        ),
        out_of_stock_count=Count("id", filter=Q(track_inventory=True, quantity=0)),
    )

    top_products = products.filter(is_featured=True).order_by("-created_at")[:5]

    return {
        "total_products": totals["total_products"] or 0,
        "total_value": Decimal(str(totals["total_value"] or 0)).quantize(Decimal("0.01")),
        "low_stock_count": totals["low_stock_count"] or 0,
        "out_of_stock_count": totals["out_of_stock_count"] or 0,
        "top_products": list(top_products),
    }
