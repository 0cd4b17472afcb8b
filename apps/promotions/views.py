"""Promotion API views."""

from __future__ import annotations

from django.shortcuts import get_object_or_404  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.bookings.models import Booking
from apps.businesses.services import get_owned_business
from apps.orders.models import Order
from apps.users.permissions import IsBusinessOwner

from .models import Promotion
from .serializers import CartSerializer, PromotionSerializer, PromotionUseSerializer
from .services import Cart, PromotionError, find_promotion, record_usage


class PromotionViewSet(viewsets.ModelViewSet):
    serializer_class = PromotionSerializer
    permission_classes = [IsBusinessOwner]

    def get_queryset(self):  # type: ignore
        return Promotion.objects.filter(business__owner=self.request.user).prefetch_related(
            "services", "products"
        )

    def get_serializer_context(self):  # type: ignore
        context = super().get_serializer_context()
        if self.action == "create":
            context["business"] = get_owned_business(self.request.user)
        return context


class ValidatePromotionView(APIView):
    """Check a code (or find the best automatic promotion) for a cart."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):  # type: ignore
        serializer = CartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        cart = Cart(
            subtotal=data["subtotal"],
            service_ids=data["service_ids"],
            product_ids=data["product_ids"],
            item_count=data["item_count"],
        )
        try:
            applied = find_promotion(data["business_id"], request.user, cart, code=data.get("code"))
        except PromotionError as e:
            return Response({"valid": False, "detail": str(e)}, status=e.status_code)
        return Response(applied.as_response())


class UsePromotionView(APIView):
    """Record that a promotion was redeemed on the caller's booking or order."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):  # type: ignore
        serializer = PromotionUseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        promotion = get_object_or_404(Promotion, pk=data["promotion_id"])
        booking = order = None
        if data.get("booking_id"):
            booking = get_object_or_404(
                Booking, pk=data["booking_id"], customer=request.user, business=promotion.business
            )
            cart = Cart(subtotal=booking.total_price, service_ids=[booking.service_id], item_count=1)
        else:
            order = get_object_or_404(Order, pk=data["order_id"], customer=request.user, business=promotion.business)
            items = list(order.items.all())
            cart = Cart(
                subtotal=order.subtotal,
                product_ids=[item.product_id for item in items],
                item_count=sum(item.quantity for item in items),
            )

        try:
            usage = record_usage(promotion, request.user, cart, booking=booking, order=order)
        except PromotionError as e:
            return Response({"detail": str(e)}, status=e.status_code)

        return Response(
            {"usage_id": usage.id, "discount_amount": str(usage.discount_amount)},
            status=status.HTTP_201_CREATED,
        )
