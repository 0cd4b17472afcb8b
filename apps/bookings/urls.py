"""URL declarations for the bookings app."""

from __future__ import annotations

from django.urls import path, include  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import BookingAvailabilityView, BookingViewSet

router = DefaultRouter()
router.register(r'', BookingViewSet, basename='booking')

urlpatterns = [
    path('availability/', BookingAvailabilityView.as_view(), name='booking-availability'),
    path('', include(router.urls)),
]
