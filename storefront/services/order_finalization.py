"""Exactly-once materialization of orders from confirmed Stripe payments.

Stripe delivers events at least once, possibly concurrently. Each handler runs
in one transaction and takes a row lock before its idempotency check:

* PaymentIntent flow: the ``payments`` row for the checkout id is locked. A
  second delivery blocks on that lock, then sees ``succeeded`` and does nothing.
* Checkout Session flow: there is no local snapshot, so the referenced
  ``items`` rows are locked and an existing order for the session id marks the
  event as already handled.

In both flows item existence and availability are re-checked under the lock
before anything is written. Any error rolls the whole transaction back.
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from storefront.errors import (
    ItemNotFound,
    ItemUnavailable,
    MissingCorrelationKey,
    SnapshotNotFound,
    TotalMismatch,
    TransientStoreError,
    ValidationError,
)
from storefront.models import (
    ItemStatus,
    Order,
    OrderItem,
    OrderStatus,
    PaymentSnapshot,
    PaymentStatus,
)
from storefront.services.pricing import (
    CartLine,
    load_items,
    normalize_cart,
    price_items,
)

logger = logging.getLogger(__name__)

PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
HANDLED_EVENT_TYPES = {PAYMENT_INTENT_SUCCEEDED, CHECKOUT_SESSION_COMPLETED}


class FinalizationStatus(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    UNPAID = "unpaid"


@dataclass(frozen=True)
class FinalizationResult:
    status: FinalizationStatus
    order_id: int | None = None


def checkout_id_from_intent(payment_intent: dict) -> str:
    checkout_id = (payment_intent.get("metadata") or {}).get("checkout_id")
    if not checkout_id:
        raise MissingCorrelationKey("Missing checkout_id in payment intent metadata")
    return str(checkout_id)


def cart_from_session(session: dict) -> list[CartLine]:
    raw = (session.get("metadata") or {}).get("order_payload")
    if not raw:
        raise MissingCorrelationKey("Missing order_payload in checkout session metadata")
    try:
        payload = json.loads(raw)
        lines = [CartLine(item_id=int(entry["id"]), quantity=int(entry.get("quantity", 1))) for entry in payload]
        return normalize_cart(lines)
    except (TypeError, ValueError, KeyError, AttributeError, ValidationError) as exc:
        raise MissingCorrelationKey(f"Invalid order_payload in checkout session metadata: {exc}") from exc


def _lock_available_items(
    db: Session,
    cart: list[CartLine],
    tax_rate: Decimal,
    *,
    require_available: bool = True,
):
    items = load_items(db, [line.item_id for line in cart], lock=True)
    try:
        priced = price_items(cart, items, tax_rate, require_available=require_available)
    except ItemNotFound as exc:
        # Payment already happened; a vanished item is a reconciliation problem.
        raise ItemUnavailable(str(exc)) from exc
    return items, priced


def _check_amount(expected_cents: int, expected_currency: str, obj: dict, amount_field: str, ref: str) -> None:
    reported = obj.get(amount_field)
    if reported is not None and int(reported) != expected_cents:
        raise TotalMismatch(
            f"Amount mismatch for {ref}: expected={expected_cents}, reported={reported}"
        )
    currency = obj.get("currency")
    if currency and str(currency).lower() != expected_currency.lower():
        raise TotalMismatch(
            f"Currency mismatch for {ref}: expected={expected_currency}, reported={currency}"
        )


def _insert_order(
    db: Session,
    *,
    checkout_id: str | None,
    external_id: str | None,
    email: str,
    full_name: str,
    total_cents: int,
    tax_cents: int,
    currency: str,
    address: dict | None,
    country_code: str | None,
    lines: list[tuple[int, int, int]],
    items: dict,
) -> Order:
    order = Order(
        checkout_id=checkout_id,
        stripe_payment_intent_id=external_id,
        email=email,
        full_name=full_name,
        total_amount_cents=total_cents,
        tax_amount_cents=tax_cents,
        currency=currency.upper(),
        address=address,
        country_code=country_code,
        status=OrderStatus.PENDING.value,
        finalized_at=None,
    )
    for product_id, quantity, price_cents in lines:
        order.items.append(
            OrderItem(
                product_id=product_id,
                quantity=quantity,
                price_cents=price_cents,
                status=OrderStatus.PENDING.value,
            )
        )
        items[product_id].status = ItemStatus.PENDING.value
    db.add(order)
    db.flush()
    return order


def finalize_payment_intent(db: Session, payment_intent: dict, tax_rate: Decimal) -> FinalizationResult:
    """Materialize the order for a ``payment_intent.succeeded`` event."""
    checkout_id = checkout_id_from_intent(payment_intent)
    intent_id = payment_intent.get("id")

    try:
        snapshot = (
            db.query(PaymentSnapshot)
            .filter(PaymentSnapshot.checkout_id == checkout_id)
            .with_for_update()
            .first()
        )
        if not snapshot:
            raise SnapshotNotFound(f"Payment record not found for checkout {checkout_id}")

        if snapshot.status == PaymentStatus.SUCCEEDED.value:
            db.commit()
            logger.info("Checkout %s already processed, skipping", checkout_id)
            return FinalizationResult(FinalizationStatus.DUPLICATE)

        _check_amount(snapshot.amount, snapshot.currency, payment_intent, "amount_received", checkout_id)

        # Unit prices were captured when the snapshot was written; they are not re-read.
        lines = [
            (int(entry["id"]), int(entry.get("quantity", 1)), int(entry["unit_price_cents"]))
            for entry in snapshot.cart_snapshot
        ]
        cart = [CartLine(item_id=product_id, quantity=quantity) for product_id, quantity, _ in lines]
        items, _ = _lock_available_items(db, cart, tax_rate)
        address = snapshot.address or {}
        country_code = (payment_intent.get("metadata") or {}).get("country_code") or address.get("country")
        order = _insert_order(
            db,
            checkout_id=checkout_id,
            external_id=intent_id,
            email=snapshot.customer_email,
            full_name=snapshot.customer_full_name,
            total_cents=snapshot.amount,
            tax_cents=snapshot.tax_amount or 0,
            currency=snapshot.currency,
            address=address,
            country_code=country_code,
            lines=lines,
            items=items,
        )

        snapshot.status = PaymentStatus.SUCCEEDED.value
        if intent_id and not snapshot.stripe_payment_intent_id:
            snapshot.stripe_payment_intent_id = intent_id
        order_id = order.id
        db.commit()
    except OperationalError as exc:
        db.rollback()
        raise TransientStoreError() from exc
    except Exception:
        db.rollback()
        raise

    logger.info("Order %s created for checkout %s (intent %s)", order_id, checkout_id, intent_id)
    return FinalizationResult(FinalizationStatus.PROCESSED, order_id=order_id)


def finalize_checkout_session(
    db: Session,
    session: dict,
    tax_rate: Decimal,
    currency: str,
) -> FinalizationResult:
    """Materialize the order for a ``checkout.session.completed`` event.

    Nothing was reserved when the session was opened, so existence,
    availability and the total are all re-validated here against the amount
    Stripe reports.
    """
    session_id = session.get("id")
    payment_status = session.get("payment_status")
    if payment_status != "paid":
        logger.info(
            "Checkout session %s completed with payment_status=%s, no order created",
            session_id,
            payment_status,
        )
        return FinalizationResult(FinalizationStatus.UNPAID)

    cart = cart_from_session(session)
    metadata = session.get("metadata") or {}

    try:
        items, priced = _lock_available_items(db, cart, tax_rate, require_available=False)

        existing = (
            db.query(Order.id).filter(Order.stripe_payment_intent_id == session_id).first()
            if session_id
            else None
        )
        if existing:
            db.commit()
            logger.info("Checkout session %s already processed as order %s, skipping", session_id, existing.id)
            return FinalizationResult(FinalizationStatus.DUPLICATE, order_id=existing.id)

        unavailable = [
            line.item_id for line in cart if items[line.item_id].status != ItemStatus.AVAILABLE.value
        ]
        if unavailable:
            raise ItemUnavailable(
                f"Item(s) no longer available for session {session_id}: "
                f"{', '.join(str(i) for i in unavailable)}"
            )

        _check_amount(priced.total_cents, currency, session, "amount_total", str(session_id))

        customer_details = session.get("customer_details") or {}
        address = _session_address(metadata, customer_details)
        order = _insert_order(
            db,
            checkout_id=None,
            external_id=session_id,
            email=metadata.get("customer_email") or customer_details.get("email") or "",
            full_name=metadata.get("customer_name") or customer_details.get("name") or "",
            total_cents=priced.total_cents,
            tax_cents=priced.tax_cents,
            currency=session.get("currency") or currency,
            address=address,
            country_code=metadata.get("country_code") or (address or {}).get("country"),
            lines=[(line.item_id, line.quantity, line.unit_price_cents) for line in priced.lines],
            items=items,
        )
        order_id = order.id
        db.commit()
    except OperationalError as exc:
        db.rollback()
        raise TransientStoreError() from exc
    except Exception:
        db.rollback()
        raise

    logger.info("Order %s created for checkout session %s", order_id, session_id)
    return FinalizationResult(FinalizationStatus.PROCESSED, order_id=order_id)


def _session_address(metadata: dict, customer_details: dict) -> dict | None:
    raw = metadata.get("address")
    if raw:
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, dict):
                return parsed
        except ValueError:
            logger.warning("Unparseable address in checkout session metadata: %r", raw)
    return customer_details.get("address")
