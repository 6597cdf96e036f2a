"""Checkout initiation: PaymentIntent flow and hosted Checkout Session flow."""

import json
import logging
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal

import stripe
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from storefront.errors import InvalidCountryCode, PaymentProcessorError, TransientStoreError
from storefront.models import PaymentSnapshot, PaymentStatus
from storefront.services.pricing import (
    CartLine,
    price_cart,
    verify_claimed_total_cents,
    verify_claimed_total_decimal,
)
from storefront.services.stripe_service import StripeProcessor

logger = logging.getLogger(__name__)

COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2}$")


@dataclass(frozen=True)
class IntentCheckout:
    checkout_id: str
    client_secret: str
    total_cents: int


@dataclass(frozen=True)
class SessionCheckout:
    session_id: str
    checkout_url: str | None
    total_cents: int


def validate_country_code(country: str | None) -> str:
    if not country or not COUNTRY_CODE_RE.match(country):
        raise InvalidCountryCode("Invalid country code (must be ISO-3166-1 alpha-2)")
    return country


def create_payment_intent(
    db: Session,
    processor: StripeProcessor,
    *,
    email: str,
    full_name: str,
    address: dict,
    cart: list[CartLine],
    claimed_total_cents: int,
    currency: str,
    tax_rate: Decimal,
) -> IntentCheckout:
    """Validate the cart, persist a pending snapshot, then request a PaymentIntent.

    The snapshot is committed before Stripe is contacted so that a webhook for
    this checkout always finds its row. Failures after that commit leave the
    snapshot ``pending``; it is not rolled back.
    """
    country = validate_country_code(address.get("country"))
    priced = price_cart(db, cart, tax_rate, require_available=True)
    verify_claimed_total_cents(priced, claimed_total_cents)

    checkout_id = str(uuid.uuid4())
    snapshot = PaymentSnapshot(
        checkout_id=checkout_id,
        amount=priced.total_cents,
        tax_amount=priced.tax_cents,
        currency=currency,
        status=PaymentStatus.PENDING.value,
        customer_email=email,
        customer_full_name=full_name,
        address=address,
        cart_snapshot=priced.snapshot(),
    )
    try:
        db.add(snapshot)
        db.commit()
    except OperationalError as exc:
        db.rollback()
        logger.exception("Failed to persist payment snapshot for checkout %s", checkout_id)
        raise TransientStoreError() from exc

    try:
        intent = processor.create_payment_intent(
            amount_cents=priced.total_cents,
            currency=currency,
            receipt_email=email,
            metadata={
                "checkout_id": checkout_id,
                "customer_email": email,
                "country_code": country,
            },
        )
    except (stripe.StripeError, ValueError) as exc:
        logger.error("PaymentIntent creation failed for checkout %s: %s", checkout_id, exc)
        raise PaymentProcessorError() from exc

    snapshot.stripe_payment_intent_id = intent.intent_id
    try:
        db.commit()
    except OperationalError as exc:
        db.rollback()
        # The webhook correlates by checkout_id, so the payment can still be materialized.
        logger.exception(
            "Failed to store PaymentIntent %s on checkout %s", intent.intent_id, checkout_id
        )
        raise TransientStoreError() from exc

    logger.info(
        "Checkout %s initiated: intent=%s total=%s %s",
        checkout_id,
        intent.intent_id,
        priced.total_cents,
        currency,
    )
    return IntentCheckout(
        checkout_id=checkout_id,
        client_secret=intent.client_secret,
        total_cents=priced.total_cents,
    )


def create_checkout_session(
    db: Session,
    processor: StripeProcessor,
    *,
    items: list[CartLine],
    customer_email: str,
    customer_name: str,
    customer_address: dict,
    claimed_total: Decimal | None,
    currency: str,
    tax_rate: Decimal,
    success_url: str,
    cancel_url: str,
) -> SessionCheckout:
    """Price the cart and open a hosted Checkout Session. Nothing is written locally.

    Availability is not checked here; the webhook re-validates everything under
    lock when the session completes.
    """
    country = validate_country_code(customer_address.get("country"))
    priced = price_cart(db, items, tax_rate, require_available=False)
    if claimed_total is not None:
        verify_claimed_total_decimal(priced, claimed_total)

    metadata = {
        "order_payload": json.dumps(
            [{"id": line.item_id, "quantity": line.quantity} for line in priced.lines],
            separators=(",", ":"),
        ),
        "customer_name": customer_name,
        "customer_email": customer_email,
        "country_code": country,
        "address": json.dumps(customer_address, separators=(",", ":")),
    }
    try:
        session = processor.create_checkout_session(
            priced,
            currency=currency,
            customer_email=customer_email,
            metadata=metadata,
            success_url=success_url,
            cancel_url=cancel_url,
        )
    except (stripe.StripeError, ValueError) as exc:
        logger.error("Checkout session creation failed: %s", exc)
        raise PaymentProcessorError("Failed to create checkout session") from exc

    logger.info(
        "Checkout session %s created: %s item(s), total=%s %s",
        session.session_id,
        len(priced.lines),
        priced.total_cents,
        currency,
    )
    return SessionCheckout(
        session_id=session.session_id,
        checkout_url=session.checkout_url,
        total_cents=priced.total_cents,
    )
