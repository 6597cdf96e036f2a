import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront.dependencies import get_current_admin
from storefront.errors import ItemInUse, ItemNotFound
from storefront.models import Item, OrderItem, User, get_db
from storefront.schemas.common import MessageResponse
from storefront.schemas.items import (
    ItemCreateRequest,
    ItemMutationResponse,
    ItemResponse,
    ItemUpdateRequest,
)

router = APIRouter()
logger = logging.getLogger(__name__)

_SIMPLE_FIELDS = ("name", "size", "material", "producer", "price", "category")


def _get_item_or_404(db: Session, item_id: int) -> Item:
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise ItemNotFound("Item not found")
    return item


@router.get(
    "",
    response_model=list[ItemResponse],
    summary="List all items",
)
def list_items(
    db: Annotated[Session, Depends(get_db)],
):
    return db.query(Item).order_by(Item.created_at.asc(), Item.id.asc()).all()


@router.get(
    "/{item_id}",
    response_model=ItemResponse,
    summary="Get item by ID",
)
def get_item(
    item_id: int,
    db: Annotated[Session, Depends(get_db)],
):
    return _get_item_or_404(db, item_id)


@router.post(
    "",
    response_model=ItemMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create item (admin)",
)
def create_item(
    body: ItemCreateRequest,
    current_admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    item = Item(
        name=body.name,
        size=body.size,
        material=body.material,
        producer=body.producer,
        price=body.price,
        category=body.category,
        status=body.status.value,
        image=list(body.image),
        description=body.description or None,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("Item %s created by admin %s", item.id, current_admin.username)
    return ItemMutationResponse(message="Item created successfully", item=ItemResponse.model_validate(item))


@router.put(
    "/{item_id}",
    response_model=ItemMutationResponse,
    summary="Update item (admin)",
)
def update_item(
    item_id: int,
    body: ItemUpdateRequest,
    current_admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    """Only provided fields change. ``description: ""`` clears the description."""
    item = _get_item_or_404(db, item_id)
    for field in _SIMPLE_FIELDS:
        value = getattr(body, field)
        if value is not None:
            setattr(item, field, value)
    if body.status is not None:
        item.status = body.status.value
    if "description" in body.model_fields_set:
        item.description = body.description or None

    images = list(item.image or [])
    if body.deleted_images:
        removed = set(body.deleted_images)
        images = [path for path in images if path not in removed]
    if body.image:
        images.extend(body.image)
    item.image = images

    db.commit()
    db.refresh(item)
    return ItemMutationResponse(message="Item updated successfully", item=ItemResponse.model_validate(item))


@router.delete(
    "/{item_id}",
    response_model=MessageResponse,
    summary="Delete item (admin)",
)
def delete_item(
    item_id: int,
    current_admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    """Items referenced by any order line cannot be deleted."""
    item = _get_item_or_404(db, item_id)
    referenced = db.query(OrderItem.id).filter(OrderItem.product_id == item_id).first()
    if referenced:
        raise ItemInUse(f"Item {item_id} is referenced by existing orders")
    db.delete(item)
    db.commit()
    logger.info("Item %s deleted by admin %s", item_id, current_admin.username)
    return MessageResponse(message="Item deleted successfully")
