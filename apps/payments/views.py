"""API views for payments: Stripe Connect onboarding, webhook and fee preview."""

from __future__ import annotations

import logging

import stripe
from django.conf import settings  # type: ignore
from django.http import HttpResponseRedirect  # type: ignore
from django.urls import reverse  # type: ignore
from django.utils.decorators import method_decorator  # type: ignore
from django.views.decorators.csrf import csrf_exempt  # type: ignore
from rest_framework import permissions, status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.businesses.models import Business
from apps.businesses.services import get_owned_business
from apps.users.permissions import IsBusinessOwner

from .fees import calculate_fees
from .serializers import FeePreviewQuerySerializer
from .services import process_webhook_event
from .stripe_client import PaymentGatewayError, StripeGateway

logger = logging.getLogger(__name__)


def _settings_url(query: str) -> str:
    return f"{settings.APP_URL}/business/dashboard/settings?{query}"


class ConnectAccountView(APIView):
    """Create (once) the business's Express account and return an onboarding link."""

    permission_classes = [IsBusinessOwner]

    def post(self, request):  # type: ignore
        business = get_owned_business(request.user)
        gateway = StripeGateway()
        try:
            if not business.stripe_account_id:
                business.stripe_account_id = gateway.create_express_account(business)
                business.save(update_fields=["stripe_account_id", "updated_at"])

            callback = request.build_absolute_uri(reverse("stripe-connect-callback"))
            url = gateway.create_account_link(
                business.stripe_account_id,
                refresh_url=_settings_url("refresh=true"),
                return_url=f"{callback}?business_id={business.id}",
            )
        except PaymentGatewayError as e:
            return Response({"detail": str(e)}, status=status.HTTP_502_BAD_GATEWAY)

        return Response({"url": url, "account_id": business.stripe_account_id})


class ConnectCallbackView(APIView):
    """
    Stripe redirects the owner's browser here after onboarding.

    The account state is read back from Stripe, so the request itself carries
    no trust; the browser is then sent on to the dashboard settings page.
    """

    permission_classes = [permissions.AllowAny]
    authentication_classes: list = []

    def get(self, request):  # type: ignore
        business_id = request.query_params.get("business_id")
        business = Business.objects.filter(pk=business_id).first() if business_id else None
        if business is None or not business.stripe_account_id:
            return HttpResponseRedirect(_settings_url("error=invalid_business"))

        try:
            account = StripeGateway().retrieve_account(business.stripe_account_id)
        except PaymentGatewayError:
            return HttpResponseRedirect(_settings_url("error=stripe_error"))

        onboarded = bool(account["charges_enabled"] and account["payouts_enabled"])
        if business.stripe_onboarded != onboarded:
            business.stripe_onboarded = onboarded
            business.save(update_fields=["stripe_onboarded", "updated_at"])

        if onboarded:
            return HttpResponseRedirect(_settings_url("success=stripe_connected"))
        return HttpResponseRedirect(_settings_url("error=onboarding_incomplete"))


class ConnectPortalView(APIView):
    """Login link to the Stripe Express dashboard."""

    permission_classes = [IsBusinessOwner]

    def post(self, request):  # type: ignore
        business = get_owned_business(request.user)
        if not business.stripe_account_id or not business.stripe_onboarded:
            return Response({"detail": "Stripe account not connected"}, status=status.HTTP_400_BAD_REQUEST)
        try:
            url = StripeGateway().create_login_link(business.stripe_account_id)
        except PaymentGatewayError:
            return Response({"detail": "Failed to access Stripe dashboard"}, status=status.HTTP_502_BAD_GATEWAY)
        return Response({"url": url})


@method_decorator(csrf_exempt, name="dispatch")
class StripeWebhookView(APIView):
    """Stripe event receiver. Authenticated by the signature header only."""

    permission_classes = [permissions.AllowAny]
    authentication_classes: list = []

    def post(self, request):  # type: ignore
        signature = request.META.get("HTTP_STRIPE_SIGNATURE")
        if not signature:
            return Response({"detail": "Missing Stripe-Signature header"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            event = StripeGateway.construct_webhook_event(request.body, signature)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Rejected Stripe webhook: {e}")
            return Response({"detail": "Invalid signature"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            processed = process_webhook_event(event)
        except PaymentGatewayError as e:
            # Nothing was recorded, so Stripe's retry is processed from scratch.
            logger.error(f"Stripe webhook {event['id']} could not be settled: {e}")
            return Response({"detail": "Payment provider error"}, status=status.HTTP_502_BAD_GATEWAY)
        return Response({"received": True, "duplicate": not processed})


class FeePreviewView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):  # type: ignore
        serializer = FeePreviewQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return Response(calculate_fees(serializer.validated_data["amount"]).as_dict())
