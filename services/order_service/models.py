import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from shared.config.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


def _utcnow():
    return datetime.now(timezone.utc)


def _new_id():
    return str(uuid.uuid4())


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=True)
    total_amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    shipping = Column(JSON, nullable=False)  # embedded, not normalized
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    discount_code = Column(String, nullable=True)
    discount_amount = Column(Float, nullable=False, default=0)
    # De-duplication key: at most one order per payment session
    stripe_session_id = Column(String, unique=True, nullable=True, index=True)
    payment_method = Column(String(20), nullable=False, default="stripe")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String, nullable=False)
    product_name = Column(String, nullable=True)  # snapshot for emails
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)  # price at time of purchase

    order = relationship("Order", back_populates="items")
