import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pos.database import get_db, get_read_db
from pos.schemas.menu import AvailabilityResponse, MenuCreate, MenuResponse, MenuUpdate
from pos.services import availability, menu_service

router = APIRouter()


@router.get("", response_model=list[MenuResponse])
async def list_menus(db: AsyncSession = Depends(get_read_db)) -> list[MenuResponse]:
    return await menu_service.list_menus(db)


@router.post("", response_model=MenuResponse, status_code=status.HTTP_201_CREATED)
async def create_menu(body: MenuCreate, db: AsyncSession = Depends(get_db)) -> MenuResponse:
    return await menu_service.create_menu(db, body)


@router.get("/{menu_id}", response_model=MenuResponse)
async def get_menu(menu_id: uuid.UUID, db: AsyncSession = Depends(get_read_db)) -> MenuResponse:
    return await menu_service.get_menu(db, menu_id)


@router.get("/{menu_id}/availability", response_model=AvailabilityResponse)
async def check_availability(
    menu_id: uuid.UUID,
    quantity: Decimal = Query(default=Decimal("1")),
    db: AsyncSession = Depends(get_read_db),
) -> AvailabilityResponse:
    result = await availability.check_can_serve(db, menu_id, quantity)
    return AvailabilityResponse(
        menu_id=menu_id,
        quantity=quantity,
        can_serve=result.can_serve,
        missing_materials=result.missing_materials,
    )


@router.put("/{menu_id}", response_model=MenuResponse)
async def update_menu(menu_id: uuid.UUID, body: MenuUpdate, db: AsyncSession = Depends(get_db)) -> MenuResponse:
    return await menu_service.update_menu(db, menu_id, body)


@router.delete("/{menu_id}", response_model=MenuResponse)
async def deactivate_menu(menu_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> MenuResponse:
    return await menu_service.deactivate_menu(db, menu_id)
