"""
Menu availability.

A menu can be served when it is active and every recipe line's required
quantity (scaled by the number of units requested) fits in the material's
current stock. Availability is never stored; it is recomputed from a stock
snapshot on every read.
"""

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pos.errors import InvalidOrderError
from pos.models.material import Material
from pos.models.menu import Menu, RecipeLine

StockSnapshot = Mapping[uuid.UUID, Decimal]


@dataclass(frozen=True)
class Availability:
    can_serve: bool
    missing_materials: list[str] | None = None


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def evaluate(menu: Menu, stock: StockSnapshot, quantity: Decimal | int = 1) -> Availability:
    """Check ``quantity`` units of ``menu`` against a stock snapshot."""
    if not menu.is_active:
        # Not orderable at all, as opposed to out of stock: no material detail.
        return Availability(can_serve=False)

    missing: list[str] = []
    for line in menu.recipe_lines:
        required = line.quantity * quantity
        if stock.get(line.material_id, Decimal("0")) < required:
            missing.append(line.material.name)

    return Availability(can_serve=not missing, missing_materials=missing or None)


def is_available(menu: Menu, stock: StockSnapshot) -> bool:
    return evaluate(menu, stock).can_serve


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _menu_query():
    return (
        select(Menu)
        .options(selectinload(Menu.recipe_lines).selectinload(RecipeLine.material))
        .execution_options(populate_existing=True)
    )


async def load_menu(db: AsyncSession, menu_id: uuid.UUID) -> Menu | None:
    result = await db.execute(_menu_query().where(Menu.id == menu_id))
    return result.scalars().first()


async def load_menus(db: AsyncSession, menu_ids: Iterable[uuid.UUID] | None = None) -> list[Menu]:
    stmt = _menu_query().order_by(Menu.created_at.desc())
    if menu_ids is not None:
        stmt = stmt.where(Menu.id.in_(list(menu_ids)))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def stock_snapshot(
    db: AsyncSession, material_ids: Iterable[uuid.UUID] | None = None
) -> dict[uuid.UUID, Decimal]:
    """Current stock of the given materials (all when None), read in one statement."""
    stmt = select(Material.id, Material.stock)
    if material_ids is not None:
        ids = list(material_ids)
        if not ids:
            return {}
        stmt = stmt.where(Material.id.in_(ids))
    result = await db.execute(stmt)
    return {row.id: row.stock for row in result}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def check_can_serve(
    db: AsyncSession, menu_id: uuid.UUID, quantity: Decimal | int = 1
) -> Availability:
    if quantity <= 0:
        raise InvalidOrderError("Requested quantity must be positive", details={"quantity": str(quantity)})

    menu = await load_menu(db, menu_id)
    if menu is None:
        return Availability(can_serve=False)

    stock = await stock_snapshot(db, [line.material_id for line in menu.recipe_lines])
    return evaluate(menu, stock, quantity)


async def get_menu_availability(db: AsyncSession, menu_id: uuid.UUID) -> bool:
    return (await check_can_serve(db, menu_id)).can_serve


async def list_menus_with_availability(db: AsyncSession) -> list[tuple[Menu, bool]]:
    """Every menu, newest first, evaluated against a single stock snapshot."""
    menus = await load_menus(db)
    stock = await stock_snapshot(db)
    return [(menu, is_available(menu, stock)) for menu in menus]
