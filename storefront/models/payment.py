from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from storefront.models.database import Base


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"


class PaymentSnapshot(Base):
    """Pre-payment reservation written before the PaymentIntent is requested."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    checkout_id = Column(String(36), unique=True, index=True, nullable=False)
    amount = Column(Integer, nullable=False)  # cents, tax included
    tax_amount = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    customer_email = Column(String(255), nullable=False)
    customer_full_name = Column(String(255), nullable=False)
    address = Column(JSON, nullable=False)
    cart_snapshot = Column(JSON, nullable=False)  # [{id, quantity, unit_price_cents}]
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
