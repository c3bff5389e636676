"""Order store against SQLite."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.order_service.models import Order, OrderItem, OrderStatus
from services.order_service.repository import OrderRepository
from shared.errors import DuplicateSessionId


def _order(session_id: str | None = "cs_repo") -> Order:
    return Order(
        total_amount=1849,
        currency="SEK",
        shipping={"fullName": "Amal Haddad", "email": "amal@example.com"},
        status=OrderStatus.PROCESSING.value,
        stripe_session_id=session_id,
        items=[],
    )


class TestInsertOrder:
    """Insertion and the session-id uniqueness constraint."""

    async def test_defaults_are_populated(self, db: AsyncSession) -> None:
        order = await OrderRepository.insert_order(db, _order())

        assert len(order.id) == 36
        assert order.payment_method == "stripe"
        assert order.discount_amount == 0
        assert order.created_at is not None
        assert order.items == []

    async def test_duplicate_session_id_raises(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        async with session_factory() as first:
            await OrderRepository.insert_order(first, _order("cs_dup"))

        async with session_factory() as second:
            with pytest.raises(DuplicateSessionId) as excinfo:
                await OrderRepository.insert_order(second, _order("cs_dup"))

        assert excinfo.value.session_id == "cs_dup"

    async def test_orders_without_session_id_do_not_collide(self, db: AsyncSession) -> None:
        first = await OrderRepository.insert_order(db, _order(None))
        second = await OrderRepository.insert_order(db, _order(None))

        assert first.id != second.id


class TestQueries:
    """Lookups return orders with their items loaded."""

    async def test_find_by_session_id_with_items(self, db: AsyncSession) -> None:
        order = await OrderRepository.insert_order(db, _order("cs_items"))
        await OrderRepository.insert_items(
            db,
            [OrderItem(order_id=order.id, product_id="prod-1", product_name="Silk Scarf", quantity=2, unit_price=900)],
        )

        found = await OrderRepository.find_by_session_id(db, "cs_items")

        assert found.id == order.id
        assert [(item.product_id, item.quantity, item.unit_price) for item in found.items] == [("prod-1", 2, 900)]

    async def test_missing_order(self, db: AsyncSession) -> None:
        assert await OrderRepository.find_by_session_id(db, "cs_nope") is None
        assert await OrderRepository.find_by_id(db, "nope") is None

    async def test_update_status(self, db: AsyncSession) -> None:
        order = await OrderRepository.insert_order(db, _order("cs_status"))

        updated = await OrderRepository.update_status(db, order.id, OrderStatus.SHIPPED.value)

        assert updated.status == "shipped"
        assert (await OrderRepository.find_by_id(db, order.id)).status == "shipped"

    async def test_update_status_of_missing_order(self, db: AsyncSession) -> None:
        assert await OrderRepository.update_status(db, "nope", "shipped") is None
