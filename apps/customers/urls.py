"""URL declarations for the customers app."""

from __future__ import annotations

from django.urls import path, include  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import CustomerProfileViewSet

router = DefaultRouter()
router.register(r'', CustomerProfileViewSet, basename='customer')

urlpatterns = [
    path('', include(router.urls)),
]
