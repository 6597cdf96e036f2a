from datetime import datetime

from pydantic import EmailStr, Field

from storefront.models import OrderStatus
from storefront.schemas.common import CamelModel


class OrderItemResponse(CamelModel):
    id: int
    product_id: int
    quantity: int
    price_cents: int
    status: str
    images: list[str] = []


class AdminOrderResponse(CamelModel):
    id: int
    checkout_id: str | None = None
    email: str
    full_name: str
    total_amount_cents: int
    tax_amount_cents: int
    currency: str
    country_code: str | None = None
    status: str
    address: dict | None = None
    created_at: datetime | None = None
    finalized_at: datetime | None = None
    items: list[OrderItemResponse]


class OrderItemPatch(CamelModel):
    id: int
    quantity: int | None = Field(default=None, ge=1)
    price_cents: int | None = Field(default=None, ge=0)
    status: OrderStatus | None = None


class OrderPatchRequest(CamelModel):
    """Only the fields present in the request body are applied."""

    email: EmailStr | None = None
    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    address: dict | None = None
    country_code: str | None = Field(default=None, pattern=r"^[A-Z]{2}$")
    status: OrderStatus | None = None
    items: list[OrderItemPatch] | None = None


class OrderByCheckoutResponse(CamelModel):
    order_id: int
