import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class RecipeLineCreate(BaseModel):
    material_id: uuid.UUID
    quantity: Decimal


class MenuCreate(BaseModel):
    name: str
    description: str | None = None
    price: Decimal
    is_active: bool = True
    materials: list[RecipeLineCreate] = []


class MenuUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    is_active: bool | None = None
    # None keeps the current recipe; a list replaces it entirely.
    materials: list[RecipeLineCreate] | None = None


class RecipeLineResponse(BaseModel):
    material_id: uuid.UUID
    material_name: str
    unit: str
    quantity: Decimal


class MenuResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    price: Decimal
    is_active: bool
    is_available: bool
    created_at: datetime
    updated_at: datetime
    materials: list[RecipeLineResponse]


class AvailabilityResponse(BaseModel):
    menu_id: uuid.UUID
    quantity: Decimal
    can_serve: bool
    missing_materials: list[str] | None = None
