import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class MaterialCreate(BaseModel):
    name: str
    unit: str
    stock: Decimal = Decimal("0")
    min_stock: Decimal = Decimal("0")


class MaterialUpdate(BaseModel):
    name: str | None = None
    unit: str | None = None
    min_stock: Decimal | None = None


class MaterialRestock(BaseModel):
    amount: Decimal


class MaterialUsage(BaseModel):
    menu_id: uuid.UUID
    menu_name: str
    quantity: Decimal


class MaterialResponse(BaseModel):
    id: uuid.UUID
    name: str
    unit: str
    stock: Decimal
    min_stock: Decimal
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime
    # Filled on single-material reads only.
    used_by: list[MaterialUsage] | None = None

    model_config = {"from_attributes": True}
