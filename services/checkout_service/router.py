from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.materializer import ClientCallback, OrderMaterializer
from services.order_service.schemas import MaterializeResponse
from shared.config.database import get_db
from shared.dependencies import get_gateway, get_materializer, get_notifier
from shared.errors import ValidationError

from .gateway import StripeGateway
from .schemas import (
    CheckoutIntent,
    ConfirmationEmailRequest,
    CreateSessionResponse,
    RetrieveSessionResponse,
    SessionRequest,
    WebhookEvent,
)
from .service import CheckoutService

router = APIRouter()


@router.post("/create-session", response_model=CreateSessionResponse)
async def create_session(intent: CheckoutIntent, gateway: StripeGateway = Depends(get_gateway)):
    created = await CheckoutService.create_session(gateway, intent)
    return CreateSessionResponse(url=created.url, session_id=created.id)


@router.get("/retrieve-session", response_model=RetrieveSessionResponse)
async def retrieve_session(session_id: str | None = None, gateway: StripeGateway = Depends(get_gateway)):
    session = await CheckoutService.retrieve_session(gateway, session_id)
    return RetrieveSessionResponse(
        session_id=session.id,
        payment_status=session.payment_status,
        status=session.status,
        customer_email=session.customer_email,
        amount_total=session.amount_total,
        currency=session.currency,
        metadata=session.metadata,
    )


# Signature verification is not performed; the payload is trusted as sent
@router.post("/webhook")
async def stripe_webhook(
    event: WebhookEvent,
    db: AsyncSession = Depends(get_db),
    materializer: OrderMaterializer = Depends(get_materializer),
):
    await CheckoutService.handle_webhook(db, materializer, event)
    return {"received": True}


@router.post("/create-order-from-session", response_model=MaterializeResponse)
async def create_order_from_session(
    payload: SessionRequest,
    db: AsyncSession = Depends(get_db),
    materializer: OrderMaterializer = Depends(get_materializer),
):
    if not payload.session_id:
        raise ValidationError("Session ID is required")

    result = await materializer.materialize(db, ClientCallback(payload.session_id))
    return MaterializeResponse.from_result(result)


@router.post("/send-confirmation-email")
async def send_confirmation_email(
    payload: ConfirmationEmailRequest,
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
    notifier=Depends(get_notifier),
):
    message_id = await CheckoutService.send_confirmation(db, gateway, notifier, payload)
    return {"success": True, "message": "Confirmation email sent successfully", "emailId": message_id}
