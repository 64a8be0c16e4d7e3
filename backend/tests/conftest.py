from __future__ import annotations

import hashlib
import hmac
import json
import os
import time
from collections.abc import Callable, Generator
from decimal import Decimal
from typing import Any

# Settings are read at import time; provide what the app needs before importing it.
os.environ.setdefault("PROJECT_NAME", "checkout-test")
os.environ.setdefault("POSTGRES_SERVER", "localhost")
os.environ.setdefault("POSTGRES_USER", "postgres")
os.environ.setdefault("POSTGRES_PASSWORD", "test-password")
os.environ.setdefault("FIRST_SUPERUSER_PASSWORD", "test-admin-password")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("PAYMENT_GATEWAY_MOCK", "true")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine, delete  # noqa: E402

from app.api.deps import get_db, get_gateway  # noqa: E402
from app.api.errors import payment_intent_not_found  # noqa: E402
from app.core import security  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.integrations.stripe_gateway import PaymentIntentInfo, PaymentIntentResult, to_minor_units  # noqa: E402
from app.main import app  # noqa: E402
from app.models import CartItem, Order, OrderItem, Product, User  # noqa: E402

WEBHOOK_SECRET = "whsec_test_secret"


class FakeRedis:
    def __init__(self) -> None:
        self.messages: list[tuple[str, dict[str, str]]] = []
        self.store: dict[str, str] = {}
        self.acked: list[str] = []

    def xadd(self, name: str, fields: dict[str, str], maxlen: int | None = None, approximate: bool = True) -> str:
        self.messages.append((name, dict(fields)))
        return f"{len(self.messages)}-0"

    def xack(self, name: str, group: str, msg_id: str) -> int:
        self.acked.append(msg_id)
        return 1

    def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool | None:
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    def eval(self, script: str, numkeys: int, key: str, value: str) -> int:
        if self.store.get(key) == value:
            del self.store[key]
            return 1
        return 0


class FakeGateway:
    """In-memory stand-in for StripeGateway."""

    def __init__(self) -> None:
        self.status: str | Exception = "succeeded"
        self.created: list[dict[str, Any]] = []
        self.retrieved: list[str] = []
        # intent id -> (amount in minor units, currency, metadata)
        self.intents: dict[str, tuple[int, str, dict[str, str]]] = {}

    @property
    def is_mock(self) -> bool:
        return True

    def add_intent(
        self, payment_intent_id: str, amount: Decimal, *, currency: str = "inr", user_id: int | None = None
    ) -> str:
        """Register an intent the gateway knows about, as if created elsewhere."""
        metadata = {"user_id": str(user_id)} if user_id is not None else {}
        self.intents[payment_intent_id] = (to_minor_units(amount, currency), currency, metadata)
        return payment_intent_id

    def create_intent(self, *, amount: Decimal, currency: str, metadata: dict[str, str] | None = None) -> PaymentIntentResult:
        self.created.append({"amount": amount, "currency": currency, "metadata": metadata or {}})
        intent_id = f"pi_test_{len(self.created)}"
        self.intents[intent_id] = (to_minor_units(amount, currency), currency, dict(metadata or {}))
        return PaymentIntentResult(
            payment_intent_id=intent_id,
            client_secret=f"{intent_id}_secret",
            amount=to_minor_units(amount, currency),
            currency=currency,
            status="requires_payment_method",
        )

    def retrieve_intent(self, payment_intent_id: str) -> PaymentIntentInfo:
        self.retrieved.append(payment_intent_id)
        if isinstance(self.status, Exception):
            raise self.status
        if payment_intent_id not in self.intents:
            raise payment_intent_not_found()
        amount, currency, metadata = self.intents[payment_intent_id]
        return PaymentIntentInfo(
            payment_intent_id=payment_intent_id,
            status=self.status,
            amount=amount,
            currency=currency,
            metadata=metadata,
        )


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
        # Clean tables after each test (children first).
        session.rollback()
        session.exec(delete(OrderItem))
        session.exec(delete(Order))
        session.exec(delete(CartItem))
        session.exec(delete(Product))
        session.exec(delete(User))
        session.commit()


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch) -> FakeRedis:
    fake = FakeRedis()
    monkeypatch.setattr("app.services.notification_service.get_redis", lambda: fake)
    return fake


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch) -> str:
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(scope="function")
def client(engine, gateway, db) -> Generator[TestClient, None, None]:
    def _override_get_db() -> Generator[Session, None, None]:
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def products(db) -> list[Product]:
    rows = [
        Product(name="Coffee Beans", price=Decimal("500.00")),
        Product(name="Pour-Over Set", price=Decimal("1450.00")),
        Product(name="Tumbler", price=Decimal("799.00")),
    ]
    for p in rows:
        db.add(p)
    db.commit()
    for p in rows:
        db.refresh(p)
    return rows


@pytest.fixture
def register(client) -> Callable[..., tuple[dict[str, str], int]]:
    """Register a buyer through the API and return (auth headers, user id)."""

    def _register(email: str = "buyer@example.com", password: str = "s3cret-pass") -> tuple[dict[str, str], int]:
        r = client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": password, "full_name": "Test Buyer"},
        )
        assert r.status_code == 200, r.text
        data = r.json()["data"]
        return {"Authorization": f"Bearer {data['access_token']}"}, data["user"]["id"]

    return _register


@pytest.fixture
def admin_headers(client, db) -> dict[str, str]:
    admin = User(
        email="admin@example.com",
        full_name="Admin",
        hashed_password=security.get_password_hash("admin-pass-123"),
        is_superuser=True,
    )
    db.add(admin)
    db.commit()
    r = client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": "admin-pass-123"})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['data']['access_token']}"}


def stripe_event(event_type: str, payment_intent_id: str, *, event_id: str = "evt_test_1") -> dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": payment_intent_id, "object": "payment_intent", "status": "succeeded"}},
    }


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for the given raw body."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.{payload.decode('utf-8')}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


@pytest.fixture
def send_webhook(client) -> Callable[..., Any]:
    """POST a signed Stripe event to the webhook endpoint."""

    def _send(event_type: str, payment_intent_id: str, *, event_id: str = "evt_test_1"):
        body = json.dumps(stripe_event(event_type, payment_intent_id, event_id=event_id)).encode()
        return client.post(
            "/api/v1/webhooks/stripe",
            content=body,
            headers={"Stripe-Signature": sign_payload(body), "Content-Type": "application/json"},
        )

    return _send
