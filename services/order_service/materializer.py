"""
Order materialization.

Turns a "payment succeeded" signal into exactly one persisted order, its line
items and one confirmation email. Signals arrive through three independent
entry points that may race for the same payment session:

    WebhookCompletion  pushed by the processor, at-least-once, unordered
    ClientCallback     the paying client after redirect; status re-read upstream
    ManualRetrigger    operator recovery; same contract as ClientCallback

There is no in-process locking (the service may be scaled horizontally). The
unique constraint on ``orders.stripe_session_id`` is the only synchronization
point: losing the insert race is treated exactly like finding the order on
the first lookup.

Once the order row exists it is authoritative. Failing to store its items or
to send the email is logged and counted for reconciliation, never rolled back.
"""
import time
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Optional, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.checkout_service.gateway import PaymentSession, StripeGateway
from services.checkout_service.metadata import SessionMetadata
from services.notification_service.sender import EmailNotifier
from shared.errors import (
    DuplicateSessionId,
    InvalidSessionMetadata,
    NotificationFailure,
    PaymentNotCompleted,
    PersistenceFailure,
)
from shared.observability import (
    notification_failures_total,
    order_materialization_duration_seconds,
    order_reconciliation_issues_total,
    orders_materialized_total,
)

from .models import Order, OrderItem, OrderStatus
from .repository import OrderRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WebhookCompletion:
    session_id: str
    payment_status: Optional[str]
    metadata: Dict[str, str] = field(default_factory=dict)
    customer_email: Optional[str] = None

    trigger_name: ClassVar[str] = "webhook"


@dataclass(frozen=True)
class ClientCallback:
    session_id: str

    trigger_name: ClassVar[str] = "client_callback"


@dataclass(frozen=True)
class ManualRetrigger:
    session_id: str

    trigger_name: ClassVar[str] = "manual"


Trigger = Union[WebhookCompletion, ClientCallback, ManualRetrigger]


@dataclass
class MaterializationResult:
    order: Order
    created: bool


class OrderMaterializer:
    def __init__(self, gateway: StripeGateway, notifier: EmailNotifier):
        self.gateway = gateway
        self.notifier = notifier

    async def materialize(self, db: AsyncSession, trigger: Trigger) -> MaterializationResult:
        log = logger.bind(trigger=trigger.trigger_name, session_id=trigger.session_id)
        started = time.perf_counter()
        try:
            result = await self._materialize(db, trigger, log)
        except PaymentNotCompleted:
            orders_materialized_total.labels(trigger=trigger.trigger_name, outcome="unpaid").inc()
            raise
        except Exception:
            orders_materialized_total.labels(trigger=trigger.trigger_name, outcome="failed").inc()
            raise
        finally:
            order_materialization_duration_seconds.labels(trigger=trigger.trigger_name).observe(
                time.perf_counter() - started
            )

        outcome = "created" if result.created else "duplicate"
        orders_materialized_total.labels(trigger=trigger.trigger_name, outcome=outcome).inc()
        return result

    async def mark_payment_failed(self, db: AsyncSession, session_id: str) -> Optional[Order]:
        """Async payment failed: back to pending (not cancelled) so an operator can still act."""
        order = await OrderRepository.find_by_session_id(db, session_id)
        if not order:
            logger.info("async_payment_failed_without_order", session_id=session_id)
            return None

        order_id, previous = order.id, order.status
        updated = await OrderRepository.update_status(db, order_id, OrderStatus.PENDING.value)
        if updated is None:
            logger.warning("async_payment_failed_order_vanished", session_id=session_id, order_id=order_id)
            return None

        logger.warning(
            "order_payment_failed",
            session_id=session_id,
            order_id=order_id,
            old_status=previous,
            new_status=updated.status,
        )
        return updated

    async def _materialize(self, db: AsyncSession, trigger: Trigger, log) -> MaterializationResult:
        # 1. Ground truth
        session = await self._resolve_ground_truth(trigger)
        if not session.is_paid:
            log.info("payment_not_completed", payment_status=session.payment_status)
            raise PaymentNotCompleted(trigger.session_id, session.payment_status)

        # 2. Idempotency check
        existing = await self._find_existing(db, trigger.session_id, log)
        if existing:
            return MaterializationResult(await self._merge_duplicate(db, existing, log), created=False)

        # 3. Derive the order from processor-held metadata
        payload = SessionMetadata.decode(session.metadata)
        order = Order(
            total_amount=payload.total,
            currency=payload.currency,
            shipping=payload.shipping(fallback_email=session.customer_email),
            status=OrderStatus.PROCESSING.value,
            discount_code=payload.discount_code,
            discount_amount=payload.discount_amount,
            stripe_session_id=trigger.session_id,
            payment_method="stripe",
            items=[],
        )

        # 4. Insert; the unique constraint settles races
        try:
            order = await OrderRepository.insert_order(db, order)
        except DuplicateSessionId:
            log.info("order_insert_lost_race")
            existing = await OrderRepository.find_by_session_id(db, trigger.session_id)
            if existing is None:
                raise PersistenceFailure(
                    f"Order for session {trigger.session_id} rejected as duplicate but not found"
                )
            return MaterializationResult(await self._merge_duplicate(db, existing, log), created=False)

        log = log.bind(order_id=order.id)
        log.info("order_created", total=order.total_amount, currency=order.currency)

        # 5. Line items, best effort
        await self._attach_items(db, order, payload, log)

        # 6. Reload with items, then notify
        order = await self._reload(db, order, log)
        await self._notify(order, trigger.session_id, log)

        return MaterializationResult(order, created=True)

    async def _resolve_ground_truth(self, trigger: Trigger) -> PaymentSession:
        if isinstance(trigger, WebhookCompletion):
            # The webhook payload's own status is trusted as-is
            return PaymentSession(
                id=trigger.session_id,
                payment_status=trigger.payment_status,
                metadata=trigger.metadata,
                customer_email=trigger.customer_email,
            )
        return await self.gateway.retrieve_session(trigger.session_id)

    async def _find_existing(self, db: AsyncSession, session_id: str, log) -> Optional[Order]:
        try:
            return await OrderRepository.find_by_session_id(db, session_id)
        except PersistenceFailure as exc:
            # The insert below is still guarded by the unique constraint
            log.error("order_lookup_failed", error=exc.message)
            order_reconciliation_issues_total.labels(reason="lookup_failed").inc()
            return None

    async def _merge_duplicate(self, db: AsyncSession, order: Order, log) -> Order:
        log = log.bind(order_id=order.id)
        if order.status == OrderStatus.PENDING.value:
            updated = await OrderRepository.update_status(db, order.id, OrderStatus.PROCESSING.value)
            if updated is None:
                log.warning("order_vanished_during_merge")
                return order
            order = updated
            log.info("order_status_advanced", old_status=OrderStatus.PENDING.value, new_status=order.status)
        else:
            log.info("order_already_exists", status=order.status)
        return order

    async def _attach_items(self, db: AsyncSession, order: Order, payload: SessionMetadata, log):
        try:
            line_items = payload.line_items()
        except InvalidSessionMetadata as exc:
            log.error("order_items_invalid", error=exc.message, action="manual reconciliation required")
            order_reconciliation_issues_total.labels(reason="items_invalid").inc()
            return

        if not line_items:
            log.warning("order_has_no_items", action="manual reconciliation required")
            order_reconciliation_issues_total.labels(reason="items_missing").inc()
            return

        items = [
            OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                product_name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in line_items
        ]
        try:
            await OrderRepository.insert_items(db, items)
        except PersistenceFailure as exc:
            log.critical("order_items_insert_failed", error=exc.message, action="manual reconciliation required")
            order_reconciliation_issues_total.labels(reason="items_insert_failed").inc()
            return

        log.info("order_items_created", count=len(items))

    async def _reload(self, db: AsyncSession, order: Order, log) -> Order:
        try:
            loaded = await OrderRepository.find_by_id(db, order.id)
        except PersistenceFailure as exc:
            log.error("order_reload_failed", error=exc.message)
            order_reconciliation_issues_total.labels(reason="reload_failed").inc()
            return order
        return loaded or order

    async def _notify(self, order: Order, session_id: str, log):
        try:
            await self.notifier.send_confirmation(order, session_id)
        except NotificationFailure as exc:
            log.error("confirmation_email_failed", error=exc.message)
            notification_failures_total.labels(kind="confirmation").inc()
        except Exception:
            # The order is already committed; nothing here may fail the request
            log.exception("confirmation_email_crashed")
            notification_failures_total.labels(kind="confirmation").inc()
