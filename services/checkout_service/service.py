from typing import Any, Dict, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.materializer import OrderMaterializer, WebhookCompletion
from services.order_service.service import OrderService
from shared.errors import CheckoutError, PaymentNotCompleted, ValidationError
from shared.observability import checkout_sessions_created_total, webhook_events_total

from .gateway import CreatedSession, PaymentSession, StripeGateway
from .schemas import CheckoutIntent, ConfirmationEmailRequest, WebhookEvent

logger = structlog.get_logger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"

# Rounding slack when checking the client's arithmetic
TOTAL_TOLERANCE = 0.01


class CheckoutService:
    @staticmethod
    def validate_intent(intent: CheckoutIntent):
        if not intent.items:
            raise ValidationError("Missing required fields: items")

        shipping = intent.shipping_info
        if not shipping or not shipping.full_name or not shipping.email:
            raise ValidationError("Missing required fields: shippingInfo (fullName, email)")

        expected = intent.subtotal + intent.shipping - intent.discount_amount
        if abs(expected - intent.total) > TOTAL_TOLERANCE:
            raise ValidationError(
                "Order total does not match subtotal, shipping and discount",
                expected_total=round(expected, 2),
                total=intent.total,
            )

    @staticmethod
    async def create_session(gateway: StripeGateway, intent: CheckoutIntent) -> CreatedSession:
        CheckoutService.validate_intent(intent)
        try:
            created = await gateway.create_session(intent)
        except CheckoutError:
            checkout_sessions_created_total.labels(status="failed").inc()
            raise

        checkout_sessions_created_total.labels(status="success").inc()
        return created

    @staticmethod
    async def retrieve_session(gateway: StripeGateway, session_id: Optional[str]) -> PaymentSession:
        if not session_id:
            raise ValidationError("Session ID is required")
        return await gateway.retrieve_session(session_id)

    @staticmethod
    async def handle_webhook(db: AsyncSession, materializer: OrderMaterializer, event: WebhookEvent):
        """
        Dispatches a processor event. Unknown event types are acknowledged and
        ignored so the processor stops redelivering them.
        """
        webhook_events_total.labels(event_type=event.type).inc()
        session = event.data.object
        log = logger.bind(event_id=event.id, event_type=event.type, session_id=session.get("id"))

        if event.type in (SESSION_COMPLETED, ASYNC_PAYMENT_SUCCEEDED):
            session_id = _require_session_id(session)
            payment_status = session.get("payment_status")
            if payment_status != "paid":
                # Delayed payment methods complete later via async_payment_succeeded
                log.info("webhook_payment_pending", payment_status=payment_status)
                return

            trigger = WebhookCompletion(
                session_id=session_id,
                payment_status=payment_status,
                metadata=_string_map(session.get("metadata")),
                customer_email=_customer_email(session),
            )
            await materializer.materialize(db, trigger)

        elif event.type == ASYNC_PAYMENT_FAILED:
            await materializer.mark_payment_failed(db, _require_session_id(session))

        else:
            log.info("webhook_event_ignored")

    @staticmethod
    async def send_confirmation(
        db: AsyncSession,
        gateway: StripeGateway,
        notifier,
        request: ConfirmationEmailRequest,
    ) -> str:
        if request.session_id:
            session = await gateway.retrieve_session(request.session_id)
            if not session.is_paid:
                raise PaymentNotCompleted(request.session_id, session.payment_status)
            order = await OrderService.find_by_session(db, request.session_id)
            return await OrderService.send_confirmation(db, notifier, order.id, request.session_id)

        if request.order_id:
            return await OrderService.send_confirmation(db, notifier, request.order_id)

        raise ValidationError("Session ID or Order ID is required")


def _require_session_id(session: Dict[str, Any]) -> str:
    session_id = session.get("id")
    if not session_id or not isinstance(session_id, str):
        raise ValidationError("Webhook event is missing the checkout session id")
    return session_id


def _string_map(value) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(key): "" if item is None else str(item) for key, item in value.items()}


def _customer_email(session: Dict[str, Any]) -> Optional[str]:
    details = session.get("customer_details")
    if session.get("customer_email"):
        return session["customer_email"]
    return details.get("email") if isinstance(details, dict) else None
