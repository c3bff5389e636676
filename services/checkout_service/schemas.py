from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ProductTitle(BaseModel):
    en: str
    ar: Optional[str] = None
    sv: Optional[str] = None


class CartProduct(BaseModel):
    id: str
    title: ProductTitle
    price: float = Field(..., ge=0)  # display price, major currency unit
    currency: Optional[str] = None
    images: List[str] = []
    discount_percentage: Optional[float] = Field(default=None, ge=0, le=100)


class ActiveEvent(BaseModel):
    id: Optional[str] = None
    discount_percentage: Optional[float] = Field(default=None, ge=0, le=100)


class CartItem(BaseModel):
    product: CartProduct
    quantity: int = Field(..., gt=0)
    active_event: Optional[ActiveEvent] = Field(default=None, alias="activeEvent")

    class Config:
        populate_by_name = True


class ShippingInfo(BaseModel):
    full_name: str = Field(default="", alias="fullName")
    email: str = ""
    phone: Optional[str] = None
    address: str = ""
    city: str = ""
    postal_code: str = Field(default="", alias="postalCode")
    country: str = ""

    class Config:
        populate_by_name = True


class CheckoutIntent(BaseModel):
    """A prospective purchase, as sent by the storefront. Never persisted."""

    items: List[CartItem] = []
    shipping_info: Optional[ShippingInfo] = Field(default=None, alias="shippingInfo")
    currency: str = Field(default="SEK", min_length=3, max_length=3)
    discount_code: Optional[str] = Field(default=None, alias="discountCode")
    discount_amount: float = Field(default=0, ge=0, alias="discountAmount")
    subtotal: float = Field(..., ge=0)
    shipping: float = Field(default=0, ge=0)
    total: float = Field(..., ge=0)

    class Config:
        populate_by_name = True
        frozen = True


class CreateSessionResponse(BaseModel):
    url: Optional[str]
    session_id: str


class RetrieveSessionResponse(BaseModel):
    session_id: str
    payment_status: Optional[str]
    status: Optional[str]
    customer_email: Optional[str]
    amount_total: Optional[int]
    currency: Optional[str]
    metadata: Dict[str, str]


class WebhookEventData(BaseModel):
    object: Dict[str, Any]


class WebhookEvent(BaseModel):
    id: Optional[str] = None
    type: str = Field(..., min_length=1)
    data: WebhookEventData


class SessionRequest(BaseModel):
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    class Config:
        populate_by_name = True


class ConfirmationEmailRequest(BaseModel):
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    order_id: Optional[str] = Field(default=None, alias="orderId")

    class Config:
        populate_by_name = True
