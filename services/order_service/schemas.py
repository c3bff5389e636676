from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class OrderItemResponse(BaseModel):
    id: int
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    unit_price: float

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    total_amount: float
    currency: str
    shipping: Dict[str, Any]
    status: str
    discount_code: Optional[str] = None
    discount_amount: float = 0
    stripe_session_id: Optional[str] = None
    payment_method: str
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class MaterializeResponse(BaseModel):
    success: bool = True
    order: OrderResponse
    message: str

    @classmethod
    def from_result(cls, result) -> "MaterializeResponse":
        message = "Order created successfully" if result.created else "Order already created"
        return cls(order=OrderResponse.model_validate(result.order), message=message)


class StatusUpdateEmailRequest(BaseModel):
    new_status: Optional[str] = Field(default=None, alias="newStatus")
    old_status: Optional[str] = Field(default=None, alias="oldStatus")

    class Config:
        populate_by_name = True
