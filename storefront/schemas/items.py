from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_serializer

from storefront.models import ItemStatus
from storefront.schemas.common import CamelModel


class ItemResponse(CamelModel):
    id: int
    name: str
    size: str
    material: str | None = None
    producer: str | None = None
    price: Decimal
    category: str
    status: str
    image: list[str] = []
    description: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True, "populate_by_name": True}

    @field_serializer("price")
    def serialize_price(self, value: Decimal) -> str:
        return format(value.quantize(Decimal("0.01")), "f")


class ItemCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    size: str = Field(min_length=1, max_length=32)
    material: str | None = None
    producer: str | None = None
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    category: str = Field(min_length=1, max_length=100)
    status: ItemStatus = ItemStatus.AVAILABLE
    image: list[str] = []
    description: str | None = None


class ItemUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    size: str | None = Field(default=None, min_length=1, max_length=32)
    material: str | None = None
    producer: str | None = None
    price: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    status: ItemStatus | None = None
    image: list[str] | None = Field(default=None, description="Image paths to append")
    deleted_images: list[str] | None = None
    description: str | None = None


class ItemMutationResponse(CamelModel):
    message: str
    item: ItemResponse
