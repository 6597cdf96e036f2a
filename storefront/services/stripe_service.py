import json
from dataclasses import dataclass
from functools import lru_cache

import stripe

from storefront.config import settings
from storefront.services.pricing import PricedCart


@dataclass(frozen=True)
class PaymentIntentResult:
    intent_id: str
    client_secret: str


@dataclass(frozen=True)
class CheckoutSessionResult:
    session_id: str
    checkout_url: str | None


class StripeProcessor:
    """Thin adapter over the Stripe SDK; one instance per process."""

    def __init__(self, api_key: str, webhook_secret: str, webhook_tolerance: int = 300):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.webhook_tolerance = webhook_tolerance

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise ValueError("STRIPE_SECRET_KEY is not set")
        return self.api_key

    def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        receipt_email: str,
        metadata: dict[str, str],
    ) -> PaymentIntentResult:
        """Create a PaymentIntent and return (id, client secret)."""
        intent = stripe.PaymentIntent.create(
            api_key=self._require_api_key(),
            amount=amount_cents,
            currency=currency,
            receipt_email=receipt_email,
            metadata=metadata,
        )
        return PaymentIntentResult(intent_id=intent.id, client_secret=intent.client_secret)

    def create_checkout_session(
        self,
        priced: PricedCart,
        currency: str,
        customer_email: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSessionResult:
        """Create a hosted Checkout Session with one line per cart item."""
        line_items = [
            {
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": line.name},
                    "unit_amount": line.unit_price_cents,
                },
                "quantity": line.quantity,
            }
            for line in priced.lines
        ]
        if priced.tax_cents:
            line_items.append(
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": "Tax"},
                        "unit_amount": priced.tax_cents,
                    },
                    "quantity": 1,
                }
            )
        session = stripe.checkout.Session.create(
            api_key=self._require_api_key(),
            payment_method_types=["card"],
            line_items=line_items,
            mode="payment",
            success_url=success_url,
            cancel_url=cancel_url,
            customer_email=customer_email,
            metadata=metadata,
        )
        return CheckoutSessionResult(session_id=session.id, checkout_url=session.url)

    def construct_event(self, payload: bytes, sig_header: str) -> dict:
        """Verify the signature over the raw payload bytes, then parse them.

        Raises ValueError for undecodable payloads and
        stripe.SignatureVerificationError for a bad or stale signature.
        """
        if not self.webhook_secret:
            raise RuntimeError("STRIPE_WEBHOOK_SECRET is not set")
        body = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            body, sig_header, self.webhook_secret, self.webhook_tolerance
        )
        event = json.loads(body)
        if not isinstance(event, dict):
            raise ValueError("Event payload is not a JSON object")
        return event


@lru_cache(maxsize=1)
def get_payment_processor() -> StripeProcessor:
    return StripeProcessor(
        api_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        webhook_tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
    )
