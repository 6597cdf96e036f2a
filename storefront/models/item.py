from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from storefront.models.database import Base


class ItemStatus(str, Enum):
    AVAILABLE = "available"
    PENDING = "pending"
    SOLD = "sold"


class Item(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    size = Column(String(32), nullable=False)
    material = Column(String(255), nullable=True)
    producer = Column(String(255), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ItemStatus.AVAILABLE.value, index=True)
    image = Column(JSON, nullable=False, default=list)  # ordered list of /uploads/... paths
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
