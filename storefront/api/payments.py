from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.dependencies import get_processor
from storefront.models import get_db
from storefront.schemas.checkout import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
)
from storefront.services import checkout
from storefront.services.pricing import CartLine
from storefront.services.stripe_service import StripeProcessor

router = APIRouter()


@router.post(
    "/create-intent",
    response_model=PaymentIntentResponse,
    summary="Validate cart and create a Stripe PaymentIntent",
)
def create_intent(
    body: PaymentIntentRequest,
    db: Annotated[Session, Depends(get_db)],
    processor: Annotated[StripeProcessor, Depends(get_processor)],
):
    """
    Recomputes the total from stored item prices and rejects the request if the
    client total differs. On success a pending payment snapshot is stored and the
    client secret for Stripe Elements is returned together with the checkout id.
    """
    result = checkout.create_payment_intent(
        db,
        processor,
        email=body.email,
        full_name=body.full_name,
        address=body.address.model_dump(exclude_none=True),
        cart=[CartLine(item_id=line.id, quantity=line.quantity) for line in body.cart],
        claimed_total_cents=body.total_amount,
        currency=settings.CURRENCY,
        tax_rate=settings.TAX_RATE,
    )
    return PaymentIntentResponse(
        client_secret=result.client_secret,
        checkout_id=result.checkout_id,
        total=result.total_cents,
    )


@router.post(
    "/checkout-session",
    response_model=CheckoutSessionResponse,
    summary="Create a hosted Stripe Checkout Session",
)
def create_checkout_session(
    body: CheckoutSessionRequest,
    db: Annotated[Session, Depends(get_db)],
    processor: Annotated[StripeProcessor, Depends(get_processor)],
):
    """Prices the cart server-side; the cart travels to the webhook in session metadata."""
    result = checkout.create_checkout_session(
        db,
        processor,
        items=[CartLine(item_id=line.id, quantity=line.quantity) for line in body.items],
        customer_email=body.customer_email,
        customer_name=body.customer_name,
        customer_address=body.customer_address.model_dump(exclude_none=True),
        claimed_total=body.total,
        currency=settings.CURRENCY,
        tax_rate=settings.TAX_RATE,
        success_url=settings.STRIPE_SUCCESS_URL,
        cancel_url=settings.STRIPE_CANCEL_URL,
    )
    return CheckoutSessionResponse(
        session_id=result.session_id,
        checkout_url=result.checkout_url,
        total=result.total_cents,
    )
