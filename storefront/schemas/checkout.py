from decimal import Decimal

from pydantic import ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from storefront.schemas.common import Address, CamelModel


class CartLineIn(CamelModel):
    id: int
    quantity: int = Field(default=1, ge=1)


class PaymentIntentRequest(CamelModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)
    address: Address
    cart: list[CartLineIn] = Field(min_length=1)
    total_amount: int = Field(description="Client-computed total in cents")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "email": "jane@example.com",
                    "fullName": "Jane Doe",
                    "address": {"line1": "1 Main St", "city": "Austin", "postalCode": "73301", "country": "US"},
                    "cart": [{"id": 1, "quantity": 1}],
                    "totalAmount": 2000,
                }
            ]
        },
    )


class PaymentIntentResponse(CamelModel):
    client_secret: str
    checkout_id: str
    total: int


class CheckoutSessionRequest(CamelModel):
    items: list[CartLineIn] = Field(min_length=1)
    customer_email: EmailStr
    customer_name: str = Field(default="", max_length=255)
    customer_address: Address
    total: Decimal | None = Field(default=None, description="Client-computed total in major units")


class CheckoutSessionResponse(CamelModel):
    session_id: str
    checkout_url: str | None = None
    checkout_id: str | None = None
    total: int
