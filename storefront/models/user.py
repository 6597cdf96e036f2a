from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from storefront.models.database import Base

ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(150), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default=ROLE_ADMIN)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
