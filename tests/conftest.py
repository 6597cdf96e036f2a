import hashlib
import hmac
import json
import os
import time
from decimal import Decimal
from typing import Generator

# Override settings for tests before importing storefront modules
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_mock"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_mock"
os.environ["TAX_RATE"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.dependencies import get_processor
from storefront.main import app
from storefront.models import Base, Item, ItemStatus, ROLE_ADMIN, User, get_db, get_session_factory
from storefront.services.stripe_service import StripeProcessor

WEBHOOK_SECRET = "whsec_test_mock"

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db_session = TestSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def processor() -> StripeProcessor:
    return StripeProcessor(api_key="sk_test_mock", webhook_secret=WEBHOOK_SECRET)


@pytest.fixture(scope="function")
def client(db: Session, processor: StripeProcessor) -> Generator[TestClient, None, None]:
    """Create a test client with database and payment processor overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestSessionLocal
    app.dependency_overrides[get_processor] = lambda: processor
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db: Session) -> User:
    from storefront.api.auth import get_password_hash

    user = User(
        username="admin",
        hashed_password=get_password_hash("adminpassword123"),
        role=ROLE_ADMIN,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def staff_user(db: Session) -> User:
    """A user that can log in but is not an admin."""
    from storefront.api.auth import get_password_hash

    user = User(
        username="staff",
        hashed_password=get_password_hash("staffpassword123"),
        role="staff",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_token(client: TestClient, admin_user: User) -> str:
    response = client.post(
        "/api/auth/login",
        json={"username": "admin", "password": "adminpassword123"},
    )
    assert response.status_code == 200
    return response.json()["accessToken"]


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {admin_token}"}


def make_item(db: Session, name: str, price: str, status: str = ItemStatus.AVAILABLE.value, **extra) -> Item:
    item = Item(
        name=name,
        size=extra.pop("size", "M"),
        price=Decimal(price),
        category=extra.pop("category", "shirts"),
        status=status,
        image=extra.pop("image", []),
        **extra,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@pytest.fixture
def shirt(db: Session) -> Item:
    return make_item(db, "Linen shirt", "12.50", image=["/uploads/shirt-front.jpg"])


@pytest.fixture
def jacket(db: Session) -> Item:
    return make_item(db, "Denim jacket", "7.50", size="L", category="jackets")


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header the way Stripe does."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def post_event(client: TestClient, event: dict, secret: str = WEBHOOK_SECRET):
    payload = json.dumps(event).encode("utf-8")
    return client.post(
        "/webhooks/stripe",
        content=payload,
        headers={"stripe-signature": sign_payload(payload, secret), "content-type": "application/json"},
    )
