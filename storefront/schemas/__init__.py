from storefront.schemas.checkout import (
    CartLineIn,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
)
from storefront.schemas.common import Address, CamelModel, MessageResponse
from storefront.schemas.items import ItemCreateRequest, ItemMutationResponse, ItemResponse, ItemUpdateRequest
from storefront.schemas.orders import (
    AdminOrderResponse,
    OrderByCheckoutResponse,
    OrderItemPatch,
    OrderItemResponse,
    OrderPatchRequest,
)

__all__ = [
    "Address",
    "AdminOrderResponse",
    "CamelModel",
    "CartLineIn",
    "CheckoutSessionRequest",
    "CheckoutSessionResponse",
    "ItemCreateRequest",
    "ItemMutationResponse",
    "ItemResponse",
    "ItemUpdateRequest",
    "MessageResponse",
    "OrderByCheckoutResponse",
    "OrderItemPatch",
    "OrderItemResponse",
    "OrderPatchRequest",
    "PaymentIntentRequest",
    "PaymentIntentResponse",
]
