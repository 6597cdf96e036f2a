import logging
from typing import Annotated

import stripe
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session, sessionmaker

from storefront.config import settings
from storefront.dependencies import get_processor
from storefront.errors import (
    ConflictError,
    FatalInvariantViolation,
    NotFoundError,
    SignatureInvalid,
    TransientStoreError,
    ValidationError,
)
from storefront.models import get_db, get_session_factory
from storefront.services.order_finalization import (
    HANDLED_EVENT_TYPES,
    PAYMENT_INTENT_SUCCEEDED,
    finalize_checkout_session,
    finalize_payment_intent,
)
from storefront.services.stripe_service import StripeProcessor

router = APIRouter()
logger = logging.getLogger(__name__)


def process_event(db: Session, event_type: str, obj: dict, event_id: str | None) -> dict:
    """Run the materialization for one verified event and build the acknowledgement.

    Business failures are acknowledged (a retry cannot fix them) but logged at
    ERROR for reconciliation. TransientStoreError propagates so Stripe retries.
    """
    if event_type == PAYMENT_INTENT_SUCCEEDED and "checkout_id" not in (obj.get("metadata") or {}):
        # Hosted Checkout Sessions also emit payment_intent.succeeded; those orders come
        # from checkout.session.completed.
        logger.info("Ignoring payment intent %s without checkout_id (event %s)", obj.get("id"), event_id)
        return {"received": True, "status": "ignored"}

    try:
        if event_type == PAYMENT_INTENT_SUCCEEDED:
            result = finalize_payment_intent(db, obj, settings.TAX_RATE)
        else:
            result = finalize_checkout_session(db, obj, settings.TAX_RATE, settings.CURRENCY)
    except FatalInvariantViolation as exc:
        logger.error(
            "INVARIANT VIOLATION on event %s (%s): %s. Payment confirmed but no order created; "
            "manual reconciliation required.",
            event_id,
            event_type,
            exc,
        )
        return {"received": True, "status": "failed", "error": exc.code}
    except (ValidationError, ConflictError, NotFoundError) as exc:
        logger.error(
            "Event %s (%s) not materialized: %s [%s]. Payment may need reconciliation.",
            event_id,
            event_type,
            exc,
            exc.code,
        )
        return {"received": True, "status": "failed", "error": exc.code}

    body = {"received": True, "status": result.status.value}
    if result.order_id is not None:
        body["orderId"] = result.order_id
    return body


def process_event_in_background(
    session_factory: sessionmaker,
    event_type: str,
    obj: dict,
    event_id: str | None,
) -> None:
    db = session_factory()
    try:
        process_event(db, event_type, obj, event_id)
    except Exception:
        logger.exception(
            "Background processing of event %s (%s) failed; redeliver the event to retry",
            event_id,
            event_type,
        )
    finally:
        db.close()


@router.post(
    "/stripe",
    summary="Stripe webhook",
)
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Annotated[Session, Depends(get_db)],
    processor: Annotated[StripeProcessor, Depends(get_processor)],
    session_factory: Annotated[sessionmaker, Depends(get_session_factory)],
):
    """
    Stripe sends events here. The signature is checked against the raw body
    before anything is parsed. ``payment_intent.succeeded`` and
    ``checkout.session.completed`` materialize an order exactly once; other
    event types are acknowledged and ignored.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise SignatureInvalid("Missing Stripe signature")

    if not processor.webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET is not set, refusing unverifiable webhook")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook verification is not configured",
        )

    try:
        event = processor.construct_event(payload, sig_header)
    except stripe.SignatureVerificationError as e:
        logger.error(f"Invalid signature: {e}")
        raise SignatureInvalid("Invalid signature")
    except ValueError as e:
        logger.error(f"Invalid payload: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")

    event_id = event.get("id")
    event_type = event.get("type")
    if event_type not in HANDLED_EVENT_TYPES:
        logger.info("Ignoring Stripe event %s of type %s", event_id, event_type)
        return {"received": True, "status": "ignored"}

    obj = (event.get("data") or {}).get("object") or {}

    if settings.WEBHOOK_ACK_EARLY:
        background_tasks.add_task(process_event_in_background, session_factory, event_type, obj, event_id)
        return {"received": True, "status": "accepted"}

    try:
        return await run_in_threadpool(process_event, db, event_type, obj, event_id)
    except TransientStoreError:
        logger.exception("Transient store error while processing event %s; Stripe will retry", event_id)
        raise
    except Exception as e:
        logger.error(f"Error processing event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
