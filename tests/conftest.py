"""Shared fixtures: SQLite order store, fake payment gateway and notifier, HTTP client."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from main import app
from services.checkout_service.gateway import CreatedSession, PaymentSession
from services.checkout_service.metadata import encode_metadata
from services.checkout_service.schemas import CheckoutIntent
from services.order_service.materializer import OrderMaterializer
from shared.config.database import create_tables, get_db
from shared.dependencies import get_gateway, get_notifier
from shared.errors import NotificationFailure, ValidationError


def make_intent(**overrides: Any) -> CheckoutIntent:
    """Silk scarf at 1000 SEK with a 10% product discount, two of them, 49 SEK shipping."""
    payload: dict[str, Any] = {
        "items": [
            {
                "product": {
                    "id": "prod-1",
                    "title": {"en": "Silk Scarf", "sv": "Sidenscarf"},
                    "price": 1000,
                    "images": ["https://cdn.example.com/scarf.jpg"],
                    "discount_percentage": 10,
                },
                "quantity": 2,
            }
        ],
        "shippingInfo": {
            "fullName": "Amal Haddad",
            "email": "amal@example.com",
            "phone": "+46 70 123 45 67",
            "address": "Storgatan 1",
            "city": "Stockholm",
            "postalCode": "111 22",
            "country": "SE",
        },
        "currency": "SEK",
        "subtotal": 1800,
        "shipping": 49,
        "total": 1849,
    }
    payload.update(overrides)
    return CheckoutIntent.model_validate(payload)


class FakeGateway:
    """In-memory payment processor."""

    def __init__(self) -> None:
        self.sessions: dict[str, PaymentSession] = {}
        self.created: list[CheckoutIntent] = []
        self.retrieve_calls = 0

    def add_session(
        self,
        session_id: str,
        intent: CheckoutIntent | None = None,
        payment_status: str = "paid",
        metadata: dict[str, str] | None = None,
    ) -> PaymentSession:
        intent = intent or make_intent()
        session = PaymentSession(
            id=session_id,
            payment_status=payment_status,
            status="complete" if payment_status == "paid" else "open",
            metadata=encode_metadata(intent) if metadata is None else metadata,
            customer_email=intent.shipping_info.email if intent.shipping_info else None,
            amount_total=int(intent.total * 100),
            currency=intent.currency.lower(),
        )
        self.sessions[session_id] = session
        return session

    async def create_session(self, intent: CheckoutIntent) -> CreatedSession:
        self.created.append(intent)
        session_id = f"cs_test_{len(self.created)}"
        self.add_session(session_id, intent, payment_status="unpaid")
        return CreatedSession(id=session_id, url=f"https://checkout.stripe.com/c/pay/{session_id}")

    async def retrieve_session(self, session_id: str) -> PaymentSession:
        self.retrieve_calls += 1
        await asyncio.sleep(0)
        if session_id not in self.sessions:
            raise ValidationError(f"No such checkout.session: '{session_id}'", session_id=session_id)
        return self.sessions[session_id]


class FakeNotifier:
    """Records every email instead of sending it."""

    def __init__(self) -> None:
        self.confirmations: list[tuple[str, str, int]] = []
        self.status_updates: list[tuple[str, str, str | None]] = []
        self.fail = False

    async def send_confirmation(self, order: Any, session_id: str) -> str:
        self.confirmations.append((order.id, session_id, len(order.items)))
        if self.fail:
            raise NotificationFailure("Resend API error: HTTP 500")
        return f"email-{len(self.confirmations)}"

    async def send_status_update(self, order: Any, new_status: str, old_status: str | None = None) -> str:
        self.status_updates.append((order.id, new_status, old_status))
        if self.fail:
            raise NotificationFailure("Resend API error: HTTP 500")
        return f"status-email-{len(self.status_updates)}"

    async def aclose(self) -> None:
        pass


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    # File-backed so separate sessions use separate connections and really race
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def materializer(gateway: FakeGateway, notifier: FakeNotifier) -> OrderMaterializer:
    return OrderMaterializer(gateway, notifier)


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: FakeGateway,
    notifier: FakeNotifier,
) -> AsyncIterator[AsyncClient]:
    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
