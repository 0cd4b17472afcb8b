"""Staff API views."""

from __future__ import annotations

from django.utils import timezone  # type: ignore
from rest_framework import status, viewsets  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.businesses.services import get_owned_business
from apps.users.permissions import IsBusinessOwner

from .models import Staff
from .serializers import StaffSerializer


class StaffViewSet(viewsets.ModelViewSet):
    """Staff of the owner's business, with services and schedule nested."""

    serializer_class = StaffSerializer
    permission_classes = [IsBusinessOwner]

    def get_queryset(self):  # type: ignore
        qs = Staff.objects.filter(business__owner=self.request.user).prefetch_related("services", "schedule")
        if self.request.query_params.get("active") == "true":
            qs = qs.filter(is_active=True)
        return qs

    def get_serializer_context(self):  # type: ignore
        context = super().get_serializer_context()
        if self.action == "create":
            context["business"] = get_owned_business(self.request.user)
        return context

    def destroy(self, request, *args, **kwargs):  # type: ignore
        from apps.bookings.models import Booking

        staff = self.get_object()
        has_upcoming = Booking.objects.filter(
            staff=staff,
            start_time__gt=timezone.now(),
            status__in=[Booking.Status.PENDING, Booking.Status.CONFIRMED],
        ).exists()
        if has_upcoming:
            return Response(
                {"detail": "Cannot delete staff member with upcoming bookings"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        staff.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
