"""Admin read/modify paths for materialized orders.

Every mutation locks the order row and runs in a single transaction; on any
error the session is rolled back so that no partial status cascade or item
release is ever committed.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import func

from storefront.errors import ItemUnavailable, OrderNotFound, TransientStoreError, ValidationError
from storefront.models import Item, ItemStatus, Order, OrderItem, OrderStatus

logger = logging.getLogger(__name__)

# Columns an admin patch may touch; None means "leave unchanged" for these.
ORDER_PATCH_FIELDS = ("email", "full_name", "currency", "address", "country_code")
ORDER_ITEM_PATCH_FIELDS = ("quantity", "price_cents", "status")


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, OrderStatus) else value


def list_orders(
    db: Session,
    status: str | None = None,
    country: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Order]:
    query = db.query(Order).options(selectinload(Order.items).selectinload(OrderItem.item))
    if status:
        query = query.filter(Order.status == status)
    if country:
        query = query.filter(Order.country_code == country)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset).all()


def get_order_id_by_checkout(db: Session, checkout_id: str) -> int:
    row = db.query(Order.id).filter(Order.checkout_id == checkout_id).first()
    if not row:
        raise OrderNotFound("Order not found yet")
    return row.id


def _lock_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if not order:
        raise OrderNotFound(f"Order {order_id} not found")
    return order


def _set_item_status(db: Session, order_id: int, status: ItemStatus) -> int:
    product_ids = select(OrderItem.product_id).where(OrderItem.order_id == order_id)
    return (
        db.query(Item)
        .filter(Item.id.in_(product_ids))
        .update({Item.status: status.value}, synchronize_session=False)
    )


def _reserve_items(db: Session, order_id: int) -> None:
    """Take the items of a reopened order back out of stock, or refuse if any were resold."""
    product_ids = select(OrderItem.product_id).where(OrderItem.order_id == order_id)
    items = db.query(Item).filter(Item.id.in_(product_ids)).order_by(Item.id).with_for_update().all()
    wanted = {row.product_id for row in db.query(OrderItem.product_id).filter(OrderItem.order_id == order_id)}
    taken = sorted(
        (wanted - {item.id for item in items})
        | {item.id for item in items if item.status != ItemStatus.AVAILABLE.value}
    )
    if taken:
        raise ItemUnavailable(
            f"Cannot reopen order {order_id}: item(s) no longer available: {', '.join(str(i) for i in taken)}"
        )
    for item in items:
        item.status = ItemStatus.PENDING.value
    db.flush()


def apply_status_change(db: Session, order: Order, new_status: str) -> None:
    """Cascade an order status change to its lines and the referenced items."""
    previous = order.status
    order.status = new_status
    if new_status == previous:
        return

    if previous == OrderStatus.CANCELLED.value:
        _reserve_items(db, order.id)

    db.query(OrderItem).filter(OrderItem.order_id == order.id).update(
        {OrderItem.status: new_status}, synchronize_session=False
    )
    if new_status == OrderStatus.CANCELLED.value:
        released = _set_item_status(db, order.id, ItemStatus.AVAILABLE)
        logger.info("Order %s cancelled, released %s item(s)", order.id, released)
    elif new_status == OrderStatus.DELIVERED.value:
        order.finalized_at = func.now()
        _set_item_status(db, order.id, ItemStatus.SOLD)


def _apply_item_patches(db: Session, order: Order, patches: list[dict]) -> None:
    lines = {line.id: line for line in db.query(OrderItem).filter(OrderItem.order_id == order.id)}
    for patch in patches:
        line = lines.get(patch.get("id"))
        if line is None:
            raise ValidationError(f"Order item {patch.get('id')} does not belong to order {order.id}")
        for field in ORDER_ITEM_PATCH_FIELDS:
            value = _plain(patch.get(field))
            if value is not None:
                setattr(line, field, value)
    order.total_amount_cents = (order.tax_amount_cents or 0) + sum(
        line.price_cents * line.quantity for line in lines.values()
    )


def update_order(db: Session, order_id: int, patch: dict[str, Any]) -> Order:
    """Apply a partial update. ``patch`` holds only the fields the caller sent."""
    try:
        order = _lock_order(db, order_id)
        for field in ORDER_PATCH_FIELDS:
            value = patch.get(field)
            if value is not None:
                setattr(order, field, value)

        new_status = _plain(patch.get("status"))
        if new_status is not None:
            apply_status_change(db, order, new_status)

        if patch.get("items"):
            _apply_item_patches(db, order, patch["items"])

        db.commit()
    except OperationalError as exc:
        db.rollback()
        logger.exception("Failed to update order %s", order_id)
        raise TransientStoreError() from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info("Order %s updated: %s", order_id, sorted(patch))
    return order


def delete_order(db: Session, order_id: int) -> None:
    try:
        _lock_order(db, order_id)
        db.query(OrderItem).filter(OrderItem.order_id == order_id).delete(synchronize_session=False)
        db.query(Order).filter(Order.id == order_id).delete(synchronize_session=False)
        db.commit()
    except OperationalError as exc:
        db.rollback()
        logger.exception("Failed to delete order %s", order_id)
        raise TransientStoreError() from exc
    except Exception:
        db.rollback()
        raise
    logger.info("Order %s and its items deleted", order_id)
