from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from services.checkout_service.schemas import SessionRequest
from shared.config.database import get_db
from shared.dependencies import get_materializer, get_notifier
from shared.errors import ValidationError

from .materializer import ManualRetrigger, OrderMaterializer
from .schemas import MaterializeResponse, OrderResponse, StatusUpdateEmailRequest
from .service import OrderService

router = APIRouter()


# Operator recovery when neither the webhook nor the client callback got through
@router.post("/materialize-from-session", response_model=MaterializeResponse)
async def materialize_from_session(
    payload: SessionRequest,
    db: AsyncSession = Depends(get_db),
    materializer: OrderMaterializer = Depends(get_materializer),
):
    if not payload.session_id:
        raise ValidationError("Session ID is required")

    result = await materializer.materialize(db, ManualRetrigger(payload.session_id))
    return MaterializeResponse.from_result(result)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, db: AsyncSession = Depends(get_db)):
    return await OrderService.get_order(db, order_id)


@router.post("/{order_id}/status-update-email")
async def send_status_update_email(
    order_id: str,
    payload: StatusUpdateEmailRequest,
    db: AsyncSession = Depends(get_db),
    notifier=Depends(get_notifier),
):
    message_id = await OrderService.send_status_update(
        db, notifier, order_id, payload.new_status, payload.old_status
    )
    return {"success": True, "message": "Status update email sent successfully", "emailId": message_id}
