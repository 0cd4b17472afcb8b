"""Order API views."""

from __future__ import annotations

from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.payments.stripe_client import PaymentGatewayError
from apps.promotions.services import PromotionError

from .models import Order
from .serializers import OrderCreateSerializer, OrderSerializer
from .services import OrderError, create_order


class OrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """Customers see their own orders, business owners see orders placed with them."""

    serializer_class = OrderSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = Order.objects.select_related("customer", "business").prefetch_related("items__product")
        if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
            return qs
        if hasattr(user, "is_platform_admin") and user.is_platform_admin():
            return qs
        if hasattr(user, "is_business_owner") and user.is_business_owner():
            qs = qs.filter(business__owner=user)
            if self.request.query_params.get("status"):
                qs = qs.filter(status=self.request.query_params["status"].upper())
            return qs
        return qs.filter(customer=user)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            checkout = create_order(
                request.user,
                business_id=data["business_id"],
                items=data["items"],
                fulfillment=data["fulfillment"],
                shipping_address=data.get("shipping_address"),
                promo_code=data.get("promo_code"),
                customer_email=data.get("customer_email", ""),
                customer_phone=data.get("customer_phone", ""),
                delivery_notes=data.get("delivery_notes", ""),
            )
        except OrderError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except PromotionError as exc:
            return Response({"detail": str(exc)}, status=exc.status_code)
        except PaymentGatewayError:
            return Response({"detail": "Failed to create payment"}, status=status.HTTP_502_BAD_GATEWAY)

        return Response(checkout.as_response(), status=status.HTTP_201_CREATED)
