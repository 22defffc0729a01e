import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from pos.models.order import OrderStatus, OrderType


class Actor(BaseModel):
    """Authenticated staff member, as supplied by the auth layer."""

    id: str
    name: str
    role: str | None = None


class OrderItemCreate(BaseModel):
    menu_id: uuid.UUID
    quantity: int


class OrderCreate(BaseModel):
    items: list[OrderItemCreate]
    customer_name: str | None = None
    type: OrderType = OrderType.CASHIER


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderItemResponse(BaseModel):
    id: uuid.UUID
    menu_id: uuid.UUID
    menu_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class CreatedByResponse(BaseModel):
    id: str
    name: str | None


class OrderResponse(BaseModel):
    id: uuid.UUID
    order_no: str
    customer_name: str | None
    status: OrderStatus
    type: OrderType
    total_price: Decimal
    created_by: CreatedByResponse | None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemResponse]
