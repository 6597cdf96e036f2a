from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.dependencies import get_current_admin
from storefront.errors import ValidationError
from storefront.models import Order, OrderStatus, User, get_db
from storefront.schemas.common import MessageResponse
from storefront.schemas.orders import (
    AdminOrderResponse,
    OrderByCheckoutResponse,
    OrderItemResponse,
    OrderPatchRequest,
)
from storefront.services import order_admin

router = APIRouter()
public_router = APIRouter()


def order_to_response(order: Order) -> AdminOrderResponse:
    return AdminOrderResponse(
        id=order.id,
        checkout_id=order.checkout_id,
        email=order.email,
        full_name=order.full_name,
        total_amount_cents=order.total_amount_cents,
        tax_amount_cents=order.tax_amount_cents or 0,
        currency=order.currency,
        country_code=order.country_code,
        status=order.status,
        address=order.address,
        created_at=order.created_at,
        finalized_at=order.finalized_at,
        items=[
            OrderItemResponse(
                id=line.id,
                product_id=line.product_id,
                quantity=line.quantity,
                price_cents=line.price_cents,
                status=line.status,
                images=list(line.item.image or []) if line.item is not None else [],
            )
            for line in order.items
        ],
    )


@router.get(
    "",
    response_model=list[AdminOrderResponse],
    summary="List orders (admin)",
)
def list_orders(
    current_admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
    status: OrderStatus | None = None,
    country: Annotated[str | None, Query(pattern=r"^[A-Z]{2}$")] = None,
    limit: Annotated[int, Query(ge=1)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """Newest first, each order with its lines and the images of the referenced items."""
    if limit > settings.ORDERS_PAGE_MAX:
        raise ValidationError(f"limit must not exceed {settings.ORDERS_PAGE_MAX}")
    orders = order_admin.list_orders(
        db,
        status=status.value if status else None,
        country=country,
        limit=limit,
        offset=offset,
    )
    return [order_to_response(order) for order in orders]


@router.patch(
    "/{order_id}",
    response_model=AdminOrderResponse,
    summary="Edit order (admin)",
)
def edit_order(
    order_id: int,
    body: OrderPatchRequest,
    current_admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Partial update. A status change is cascaded to every order line; cancelling
    releases the items back to ``available`` and delivering marks them ``sold``.
    """
    order = order_admin.update_order(db, order_id, body.model_dump(exclude_unset=True))
    return order_to_response(order)


@router.delete(
    "/{order_id}",
    response_model=MessageResponse,
    summary="Delete order (admin)",
)
def delete_order(
    order_id: int,
    current_admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    order_admin.delete_order(db, order_id)
    return MessageResponse(message="Order and related items deleted successfully")


@public_router.get(
    "/by-checkout/{checkout_id}",
    response_model=OrderByCheckoutResponse,
    summary="Look up the order created for a checkout",
)
def order_by_checkout(
    checkout_id: str,
    db: Annotated[Session, Depends(get_db)],
):
    """Lets the storefront show the order number once the webhook has run."""
    return OrderByCheckoutResponse(order_id=order_admin.get_order_id_by_checkout(db, checkout_id))
