"""URL declarations for the payments app."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import (
    ConnectAccountView,
    ConnectCallbackView,
    ConnectPortalView,
    FeePreviewView,
    StripeWebhookView,
)

urlpatterns = [
    path('connect/account/', ConnectAccountView.as_view(), name='stripe-connect-account'),
    path('connect/callback/', ConnectCallbackView.as_view(), name='stripe-connect-callback'),
    path('connect/portal/', ConnectPortalView.as_view(), name='stripe-connect-portal'),
    path('webhook/', StripeWebhookView.as_view(), name='stripe-webhook'),
    path('fees/', FeePreviewView.as_view(), name='fee-preview'),
]
