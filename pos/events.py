"""
Pydantic event schemas published to Kafka after a change is committed.
All events extend EventBase which carries correlation/tracing metadata.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class EventBase(BaseModel):
    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_version: int = 1
    correlation_id: str  # carries X-Request-ID from the HTTP layer
    occurred_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"extra": "ignore"}


class OrderItemEvent(BaseModel):
    menu_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = {"extra": "ignore"}


class OrderPlacedEvent(EventBase):
    order_id: uuid.UUID
    order_no: str
    order_type: str  # "cashier" | "self-order"
    customer_name: str | None
    total_price: Decimal
    items: list[OrderItemEvent]


class OrderStatusChangedEvent(EventBase):
    order_id: uuid.UUID
    order_no: str
    status: str  # "completed" | "cancelled"


class MaterialLowStockEvent(EventBase):
    material_id: uuid.UUID
    name: str
    unit: str
    stock: Decimal
    min_stock: Decimal
