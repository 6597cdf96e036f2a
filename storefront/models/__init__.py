from storefront.models.database import Base, get_db, get_session_factory
from storefront.models.item import Item, ItemStatus
from storefront.models.payment import PaymentSnapshot, PaymentStatus
from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.models.user import ROLE_ADMIN, User

__all__ = [
    "Base",
    "get_db",
    "get_session_factory",
    "Item",
    "ItemStatus",
    "PaymentSnapshot",
    "PaymentStatus",
    "Order",
    "OrderItem",
    "OrderStatus",
    "ROLE_ADMIN",
    "User",
]
