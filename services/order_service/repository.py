from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shared.errors import DuplicateSessionId, PersistenceFailure

from .models import Order, OrderItem


class OrderRepository:
    """Order store. Uniqueness of stripe_session_id is enforced by the database."""

    @staticmethod
    async def insert_order(db: AsyncSession, order: Order) -> Order:
        """
        Inserts a new order and returns it detached from the session.

        All column defaults are generated client-side, so the returned
        instance is complete without a refresh. Being detached, it stays
        readable even if a later statement on the same session rolls back.
        """
        db.add(order)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            if order.stripe_session_id:
                raise DuplicateSessionId(order.stripe_session_id) from exc
            raise PersistenceFailure(f"Failed to create order: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            await db.rollback()
            raise PersistenceFailure(f"Failed to create order: {exc}") from exc

        db.expunge(order)
        return order

    @staticmethod
    async def insert_items(db: AsyncSession, items: list[OrderItem]) -> list[OrderItem]:
        db.add_all(items)
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise PersistenceFailure(f"Failed to add order items: {exc}") from exc
        return items

    @staticmethod
    async def find_by_session_id(db: AsyncSession, session_id: str) -> Order | None:
        stmt = (
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.stripe_session_id == session_id)
            .execution_options(populate_existing=True)
        )
        try:
            result = await db.execute(stmt)
        except SQLAlchemyError as exc:
            await db.rollback()
            raise PersistenceFailure(f"Failed to fetch order for session {session_id}: {exc}") from exc
        return result.scalars().first()

    @staticmethod
    async def find_by_id(db: AsyncSession, order_id: str) -> Order | None:
        stmt = (
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        try:
            result = await db.execute(stmt)
        except SQLAlchemyError as exc:
            await db.rollback()
            raise PersistenceFailure(f"Failed to fetch order {order_id}: {exc}") from exc
        return result.scalars().first()

    @staticmethod
    async def update_status(db: AsyncSession, order_id: str, status: str) -> Order | None:
        order = await OrderRepository.find_by_id(db, order_id)
        if not order:
            return None

        order.status = status
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise PersistenceFailure(f"Failed to update order status: {exc}") from exc

        return await OrderRepository.find_by_id(db, order_id)
