from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storefront.models.database import Base


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    checkout_id = Column(String(36), unique=True, nullable=True, index=True)  # null for checkout sessions
    stripe_payment_intent_id = Column(String(255), unique=True, nullable=True)  # pi_... or cs_...
    email = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    total_amount_cents = Column(Integer, nullable=False)
    tax_amount_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False)
    address = Column(JSON, nullable=True)
    country_code = Column(String(2), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    finalized_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # Not a foreign key: historical orders keep the id even if the item row goes away.
    product_id = Column(Integer, nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    price_cents = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)

    order = relationship("Order", back_populates="items")
    item = relationship(
        "Item",
        primaryjoin="foreign(OrderItem.product_id) == Item.id",
        viewonly=True,
    )
