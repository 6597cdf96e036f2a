import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from jose import jwt
from passlib.context import CryptContext
from pydantic import ConfigDict, Field
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.dependencies import get_current_admin
from storefront.models import User, get_db
from storefront.schemas.common import CamelModel

router = APIRouter()
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
logger = logging.getLogger(__name__)


class LoginRequest(CamelModel):
    username: str = Field(min_length=1, max_length=150)
    password: str

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"username": "admin", "password": "securepassword"}]},
        populate_by_name=True,
    )


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(CamelModel):
    id: int
    username: str
    role: str


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user: User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    to_encode = {"sub": str(user.id), "role": user.role, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Admin login",
)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
):
    """Exchange admin credentials for a short-lived bearer token."""
    user = db.query(User).filter(User.username == body.username).first()
    if not user or not verify_password(body.password, user.hashed_password):
        logger.warning("Failed admin login for username=%s", body.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    return TokenResponse(
        access_token=create_access_token(user),
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
    )


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Current admin",
)
def me(
    current_admin: Annotated[User, Depends(get_current_admin)],
):
    return MeResponse(id=current_admin.id, username=current_admin.username, role=current_admin.role)
