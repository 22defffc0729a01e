import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from pos.database import get_db, get_read_db
from pos.schemas.material import MaterialCreate, MaterialResponse, MaterialRestock, MaterialUpdate
from pos.services import inventory_service

router = APIRouter()


@router.get("", response_model=list[MaterialResponse])
async def list_materials(db: AsyncSession = Depends(get_read_db)) -> list[MaterialResponse]:
    return await inventory_service.list_materials(db)


@router.post("", response_model=MaterialResponse, status_code=status.HTTP_201_CREATED)
async def create_material(body: MaterialCreate, db: AsyncSession = Depends(get_db)) -> MaterialResponse:
    return await inventory_service.create_material(db, body)


@router.get("/{material_id}", response_model=MaterialResponse)
async def get_material(material_id: uuid.UUID, db: AsyncSession = Depends(get_read_db)) -> MaterialResponse:
    return await inventory_service.get_material(db, material_id)


@router.patch("/{material_id}", response_model=MaterialResponse)
async def update_material(
    material_id: uuid.UUID,
    body: MaterialUpdate,
    db: AsyncSession = Depends(get_db),
) -> MaterialResponse:
    return await inventory_service.update_material(db, material_id, body)


@router.post("/{material_id}/restock", response_model=MaterialResponse)
async def restock_material(
    material_id: uuid.UUID,
    body: MaterialRestock,
    db: AsyncSession = Depends(get_db),
) -> MaterialResponse:
    return await inventory_service.restock_material(db, material_id, body.amount)


@router.delete("/{material_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_material(material_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> None:
    await inventory_service.delete_material(db, material_id)
