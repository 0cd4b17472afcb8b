"""URL declarations for the promotions app."""

from __future__ import annotations

from django.urls import path, include  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import PromotionViewSet, UsePromotionView, ValidatePromotionView

router = DefaultRouter()
router.register(r'', PromotionViewSet, basename='promotion')

urlpatterns = [
    path('validate/', ValidatePromotionView.as_view(), name='promotion-validate'),
    path('use/', UsePromotionView.as_view(), name='promotion-use'),
    path('', include(router.urls)),
]
