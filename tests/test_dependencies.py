from datetime import datetime, timedelta, timezone

from fastapi import status
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from storefront.config import settings
from storefront.dependencies import get_current_user_optional


def _token(claims: dict) -> str:
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def test_get_current_user_optional_success(db, admin_user):
    """Valid access token resolves to the user."""
    token = _token(
        {"sub": str(admin_user.id), "type": "access", "exp": datetime.now(timezone.utc) + timedelta(hours=1)}
    )
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

    user = get_current_user_optional(credentials, db)

    assert user is not None
    assert user.id == admin_user.id


def test_get_current_user_optional_none(db):
    assert get_current_user_optional(None, db) is None


def test_get_current_user_optional_invalid_token(db):
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="invalid_token")

    assert get_current_user_optional(credentials, db) is None


def test_get_current_user_optional_rejects_other_token_types(db, admin_user):
    token = _token(
        {"sub": str(admin_user.id), "type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(hours=1)}
    )
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

    assert get_current_user_optional(credentials, db) is None


def test_admin_endpoint_invalid_token(client):
    response = client.get(
        "/api/admin/orders",
        headers={"Authorization": "Bearer invalid_token_here"},
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.headers["www-authenticate"] == "Bearer"


def test_admin_endpoint_expired_token(client, admin_user):
    expired_token = _token(
        {"sub": str(admin_user.id), "exp": datetime.now(timezone.utc) - timedelta(hours=1)}
    )

    response = client.get(
        "/api/admin/orders",
        headers={"Authorization": f"Bearer {expired_token}"},
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_admin_endpoint_nonexistent_user(client, db):
    token = _token({"sub": "99999", "exp": datetime.now(timezone.utc) + timedelta(hours=1)})

    response = client.get(
        "/api/admin/orders",
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
