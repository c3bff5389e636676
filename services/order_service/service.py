import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification_service.sender import EmailNotifier
from shared.errors import NotificationFailure, OrderNotFound, ValidationError
from shared.observability import notification_failures_total

from .models import Order
from .repository import OrderRepository

logger = structlog.get_logger(__name__)


class OrderService:
    @staticmethod
    async def get_order(db: AsyncSession, order_id: str) -> Order:
        order = await OrderRepository.find_by_id(db, order_id)
        if not order:
            raise OrderNotFound(order_id=order_id)
        return order

    @staticmethod
    async def send_status_update(
        db: AsyncSession,
        notifier: EmailNotifier,
        order_id: str,
        new_status: str | None,
        old_status: str | None = None,
    ) -> str:
        """Emails the customer about a status change made elsewhere (the admin dashboard)."""
        if not new_status:
            raise ValidationError("New status is required")

        order = await OrderService.get_order(db, order_id)
        if not (order.shipping or {}).get("email"):
            raise ValidationError("Customer email not found in order", order_id=order_id)

        try:
            return await notifier.send_status_update(order, new_status, old_status)
        except NotificationFailure:
            notification_failures_total.labels(kind="status_update").inc()
            raise

    @staticmethod
    async def send_confirmation(
        db: AsyncSession,
        notifier: EmailNotifier,
        order_id: str,
        session_id: str | None = None,
    ) -> str:
        """Re-sends the confirmation email for an existing order."""
        order = await OrderService.get_order(db, order_id)
        if not (order.shipping or {}).get("email"):
            raise ValidationError("Customer email not found in order", order_id=order_id)

        try:
            return await notifier.send_confirmation(order, session_id or order.stripe_session_id or "")
        except NotificationFailure:
            notification_failures_total.labels(kind="confirmation").inc()
            raise

    @staticmethod
    async def find_by_session(db: AsyncSession, session_id: str) -> Order:
        order = await OrderRepository.find_by_session_id(db, session_id)
        if not order:
            logger.info("order_not_found_for_session", session_id=session_id)
            raise OrderNotFound("Order not found for this session", session_id=session_id)
        return order
