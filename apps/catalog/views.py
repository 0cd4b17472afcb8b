"""Catalog API views (services, product categories, products)."""

from __future__ import annotations

from rest_framework import permissions, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.businesses.services import get_owned_business
from apps.users.permissions import IsBusinessOwner, IsBusinessOwnerOrReadOnly

from .models import Product, ProductCategory, Service
from .serializers import ProductCategorySerializer, ProductSerializer, ServiceSerializer
from .services import product_metrics


def _is_owner(user) -> bool:  # type: ignore
    return bool(
        user.is_authenticated and hasattr(user, "is_business_owner") and user.is_business_owner()
    )


class ServiceViewSet(viewsets.ModelViewSet):
    """Services.

    Owners manage the services of their own business. Everybody else sees
    active services, optionally narrowed with ``?business=<id>``.
    """

    serializer_class = ServiceSerializer
    permission_classes = [IsBusinessOwnerOrReadOnly]

    def get_queryset(self):  # type: ignore
        qs = Service.objects.select_related("business")
        user = self.request.user
        if self.request.method not in permissions.SAFE_METHODS or (
            _is_owner(user) and not self.request.query_params.get("business")
        ):
            return qs.filter(business__owner=user).order_by("name")

        qs = qs.filter(is_active=True, business__is_active=True)
        business_id = self.request.query_params.get("business")
        if business_id:
            qs = qs.filter(business_id=business_id)
        return qs.order_by("name")

    def perform_create(self, serializer):  # type: ignore
        serializer.save(business=get_owned_business(self.request.user))


class ProductCategoryViewSet(viewsets.ModelViewSet):
    serializer_class = ProductCategorySerializer
    permission_classes = [IsBusinessOwner]

    def get_queryset(self):  # type: ignore
        return ProductCategory.objects.filter(business__owner=self.request.user)

    def perform_create(self, serializer):  # type: ignore
        serializer.save(business=get_owned_business(self.request.user))


class ProductViewSet(viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [IsBusinessOwner]

    def get_queryset(self):  # type: ignore
        qs = Product.objects.filter(business__owner=self.request.user).select_related("category")
        if self.request.query_params.get("active") == "true":
            qs = qs.filter(is_active=True)
        category = self.request.query_params.get("category")
        if category:
            qs = qs.filter(category_id=category)
        return qs

    def get_serializer_context(self):  # type: ignore
        context = super().get_serializer_context()
        if self.action == "create":
            context["business"] = get_owned_business(self.request.user)
        return context

    @action(detail=False, methods=["get"])
    def metrics(self, request):
        """Stock value and low/out-of-stock counts for the owner's business."""
        business = get_owned_business(request.user)
        data = product_metrics(business)
        data["top_products"] = ProductSerializer(data["top_products"], many=True).data
        return Response(data)
