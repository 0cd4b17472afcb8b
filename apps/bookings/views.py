"""API views for the booking domain."""

from __future__ import annotations

import logging

from django.shortcuts import get_object_or_404  # type: ignore
from django.utils import timezone  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.businesses.models import Business
from apps.catalog.models import Service
from apps.payments.stripe_client import PaymentGatewayError
from apps.users.permissions import IsCustomer

from .models import Booking
from .serializers import (
    AvailabilityQuerySerializer,
    BookingCancelSerializer,
    BookingCreateSerializer,
    BookingSerializer,
)
from .services import (
    BookingActionError,
    BookingConflictError,
    cancel_booking,
    complete_booking,
    create_booking,
    get_day_availability,
    is_business_owner_of,
    refund_booking,
)
from .tasks import notify_booking_cancelled, notify_booking_refunded

logger = logging.getLogger(__name__)


class IsBookingStakeholder(permissions.BasePermission):
    """The customer, the business owner and platform staff can act on a booking."""

    def has_object_permission(self, request, view, obj: Booking):  # type: ignore
        user = request.user
        if not user.is_authenticated:
            return False
        if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
            return True
        if hasattr(user, "is_platform_admin") and user.is_platform_admin():
            return True
        return obj.customer_id == user.id or is_business_owner_of(obj, user)


class BookingViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Bookings.

    - customers see their own bookings and create new ones
    - business owners see their business's bookings, filterable by
      ``start_date``, ``end_date`` and ``status``
    - cancel and refund are open to both sides; complete and status changes
      are for the business owner
    """

    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated, IsBookingStakeholder]

    def get_permissions(self):  # type: ignore
        if self.action == "create":
            return [permissions.IsAuthenticated(), IsCustomer()]
        return super().get_permissions()

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = Booking.objects.select_related("customer", "business", "service", "staff", "review")
        if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
            return qs
        if hasattr(user, "is_platform_admin") and user.is_platform_admin():
            return qs
        if hasattr(user, "is_business_owner") and user.is_business_owner():
            qs = qs.filter(business__owner=user)
            params = self.request.query_params
            if params.get("start_date"):
                qs = qs.filter(date__gte=params["start_date"])
            if params.get("end_date"):
                qs = qs.filter(date__lte=params["end_date"])
            if params.get("status"):
                qs = qs.filter(status=params["status"].upper())
            return qs.order_by("start_time")
        return qs.filter(customer=user)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            checkout = create_booking(
                request.user,
                business_id=data["business_id"],
                service_id=data["service_id"],
                day=data["date"],
                at=data["time"],
                staff_id=data.get("staff_id"),
                notes=data.get("notes", ""),
            )
        except BookingConflictError as exc:
            return Response({"non_field_errors": [str(exc)]}, status=status.HTTP_400_BAD_REQUEST)
        except BookingActionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except PaymentGatewayError:
            return Response({"detail": "Failed to create payment"}, status=status.HTTP_502_BAD_GATEWAY)

        return Response(checkout.as_response(), status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):  # type: ignore
        """Owner status override."""
        booking: Booking = self.get_object()  # type: ignore
        if not is_business_owner_of(booking, request.user):
            return Response(status=status.HTTP_403_FORBIDDEN)

        new_status = str(request.data.get("status", "")).upper()
        if new_status not in Booking.Status.values:
            return Response({"detail": "Invalid status"}, status=status.HTTP_400_BAD_REQUEST)

        previous = booking.status
        booking.status = new_status
        update_fields = ["status", "updated_at"]
        if new_status == Booking.Status.CANCELLED and not booking.cancelled_at:
            booking.cancelled_at = timezone.now()
            update_fields.append("cancelled_at")
        booking.save(update_fields=update_fields)
        logger.info(f"Booking {booking.id} status {previous} -> {new_status} by owner {request.user.id}")

        if new_status == Booking.Status.COMPLETED and previous != new_status:
            from apps.customers.services import refresh_customer_profile

            refresh_customer_profile(booking.business, booking.customer)
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        serializer = BookingCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            message = cancel_booking(booking, request.user, serializer.validated_data["reason"])
        except BookingActionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        notify_booking_cancelled.delay(booking.id)
        return Response({"id": booking.id, "status": booking.status, "message": message})

    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        try:
            refund = refund_booking(booking, request.user)
        except BookingActionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except PaymentGatewayError:
            return Response({"detail": "Failed to process refund"}, status=status.HTTP_502_BAD_GATEWAY)

        notify_booking_refunded.delay(booking.id)
        return Response(
            {
                "id": booking.id,
                "status": booking.status,
                "payment_status": booking.payment_status,
                "refund_id": refund.id,
                "message": "Refund processed successfully",
            }
        )

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        if not is_business_owner_of(booking, request.user):
            return Response(status=status.HTTP_403_FORBIDDEN)
        try:
            complete_booking(booking)
        except BookingActionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(BookingSerializer(booking).data)


class BookingAvailabilityView(APIView):
    """Public day view used by the booking widget."""

    permission_classes = [permissions.AllowAny]

    def get(self, request):  # type: ignore
        serializer = AvailabilityQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        business = get_object_or_404(Business, pk=data["business_id"], is_active=True)
        service = None
        if data.get("service_id"):
            service = get_object_or_404(Service, pk=data["service_id"], business=business)
        return Response(get_day_availability(business, data["date"], service))
