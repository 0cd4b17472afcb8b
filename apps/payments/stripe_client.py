"""
Stripe SDK wrapper.

Transient failures (connection problems, rate limits) are retried with
exponential backoff; every other Stripe error surfaces as PaymentGatewayError
so views can map it to a 502.
"""

from __future__ import annotations

from typing import Any

import stripe
import structlog
from django.conf import settings  # type: ignore
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)

TRANSIENT_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError)


class PaymentGatewayError(Exception):
    """Raised when Stripe rejects or cannot complete a request."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


_retry_transient = retry(
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    reraise=True,
)


class StripeGateway:
    """Thin facade over the stripe module used by bookings, orders and Connect."""

    def __init__(self, api_key: str | None = None) -> None:
        stripe.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.currency = settings.STRIPE_CURRENCY

    def _call(self, event: str, func, **params: Any):  # type: ignore
        try:
            return _retry_transient(func)(**params)
        except stripe.StripeError as e:
            logger.error(
                "stripe_api_error",
                operation=event,
                error_code=getattr(e, "code", None),
                error_message=str(e),
            )
            raise PaymentGatewayError(str(e) or "Payment provider error", original_error=e) from e

    # --- Customers and payments -------------------------------------------
    def get_or_create_customer(self, user) -> str:  # type: ignore
        """Return the user's Stripe customer id, creating and storing one if needed."""
        if user.stripe_customer_id:
            return user.stripe_customer_id

        customer = self._call(
            "customer.create",
            stripe.Customer.create,
            email=user.email,
            name=user.get_full_name() or user.display_name,
            metadata={"user_id": str(user.id)},
        )
        user.stripe_customer_id = customer.id
        user.save(update_fields=["stripe_customer_id"])
        logger.info("stripe_customer_created", user_id=user.id, customer_id=customer.id)
        return customer.id

    def create_destination_payment_intent(
        self,
        *,
        amount_cents: int,
        application_fee_cents: int,
        destination_account: str,
        customer_id: str,
        metadata: dict[str, str],
        description: str = "",
    ):  # type: ignore
        """Charge on the platform and transfer the remainder to the business account."""
        intent = self._call(
            "payment_intent.create",
            stripe.PaymentIntent.create,
            amount=amount_cents,
            currency=self.currency,
            customer=customer_id,
            application_fee_amount=application_fee_cents,
            transfer_data={"destination": destination_account},
            automatic_payment_methods={"enabled": True},
            metadata=metadata,
            description=description,
        )
        logger.info(
            "payment_intent_created",
            payment_intent_id=intent.id,
            amount_cents=amount_cents,
            destination=destination_account,
        )
        return intent

    def cancel_payment_intent(self, payment_intent_id: str, reason: str = "abandoned"):  # type: ignore
        """Void an unpaid intent so the customer can no longer complete it."""
        intent = self._call(
            "payment_intent.cancel",
            stripe.PaymentIntent.cancel,
            intent=payment_intent_id,
            cancellation_reason=reason,
        )
        logger.info("payment_intent_cancelled", payment_intent_id=payment_intent_id, reason=reason)
        return intent

    def create_refund(self, payment_intent_id: str, reason: str = "requested_by_customer"):  # type: ignore
        refund = self._call(
            "refund.create",
            stripe.Refund.create,
            payment_intent=payment_intent_id,
            reason=reason,
        )
        logger.info("refund_created", payment_intent_id=payment_intent_id, refund_id=refund.id)
        return refund

    # --- Connect ------------------------------------------------------------
    def create_express_account(self, business) -> str:  # type: ignore
        account = self._call(
            "account.create",
            stripe.Account.create,
            type="express",
            country="US",
            email=business.email or business.owner.email,
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            business_profile={"name": business.business_name},
            metadata={"business_id": str(business.id)},
        )
        logger.info("connect_account_created", business_id=business.id, account_id=account.id)
        return account.id

    def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        link = self._call(
            "account_link.create",
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        return link.url

    def retrieve_account(self, account_id: str):  # type: ignore
        return self._call("account.retrieve", stripe.Account.retrieve, id=account_id)

    def create_login_link(self, account_id: str) -> str:
        link = self._call("login_link.create", stripe.Account.create_login_link, account=account_id)
        return link.url

    # --- Webhooks -----------------------------------------------------------
    @staticmethod
    def construct_webhook_event(payload: bytes, signature: str, secret: str | None = None):  # type: ignore
        """Verify the signature header; raises ValueError or SignatureVerificationError."""
        return stripe.Webhook.construct_event(payload, signature, secret or settings.STRIPE_WEBHOOK_SECRET)
