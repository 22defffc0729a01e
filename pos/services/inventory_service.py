import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pos.errors import InsufficientStockError, InvalidCatalogError, MaterialInUseError, NotFoundError
from pos.models.material import Material
from pos.models.menu import Menu, RecipeLine
from pos.schemas.material import MaterialCreate, MaterialResponse, MaterialUpdate, MaterialUsage

logger = logging.getLogger(__name__)


@dataclass
class StockLevel:
    material_id: uuid.UUID
    name: str
    unit: str
    stock: Decimal
    min_stock: Decimal

    @property
    def is_low(self) -> bool:
        return self.stock < self.min_stock


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_response(material: Material, used_by: list[MaterialUsage] | None = None) -> MaterialResponse:
    response = MaterialResponse.model_validate(material)
    if used_by is not None:
        response = response.model_copy(update={"used_by": used_by})
    return response


async def _usages(db: AsyncSession, material_id: uuid.UUID) -> list[MaterialUsage]:
    result = await db.execute(
        select(Menu.id, Menu.name, RecipeLine.quantity)
        .join(RecipeLine, RecipeLine.menu_id == Menu.id)
        .where(RecipeLine.material_id == material_id)
        .order_by(Menu.name)
    )
    return [MaterialUsage(menu_id=row.id, menu_name=row.name, quantity=row.quantity) for row in result]


async def _fetch_material(db: AsyncSession, material_id: uuid.UUID) -> Material:
    result = await db.execute(
        select(Material).where(Material.id == material_id).execution_options(populate_existing=True)
    )
    material = result.scalars().first()
    if material is None:
        raise NotFoundError("Material", material_id)
    return material


def _require_non_negative(field: str, value: Decimal) -> None:
    if value < 0:
        raise InvalidCatalogError(f"{field} must not be negative", details={field: str(value)})


def _require_text(field: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise InvalidCatalogError(f"{field} is required")
    return value.strip()


# ---------------------------------------------------------------------------
# Stock movements
# ---------------------------------------------------------------------------


async def deduct_stock(
    db: AsyncSession,
    requirements: Mapping[uuid.UUID, Decimal],
    consumers: Mapping[uuid.UUID, Sequence[str]] | None = None,
) -> list[StockLevel]:
    """
    Conditionally subtract ``requirements[material_id]`` from each material.

    Each row is updated with ``stock = stock - n WHERE stock >= n`` so the
    database never lets stock go negative, whatever an earlier read saw. Rows
    are touched in ascending id order so concurrent orders lock materials in
    the same order. Does not commit: the caller owns the transaction and must
    roll back when this raises.

    ``consumers`` maps a material to the names of the menus drawing on it; the
    menus behind any short material are named in the raised error.
    """
    levels: list[StockLevel] = []
    insufficient: list[uuid.UUID] = []

    for material_id in sorted(requirements):
        amount = requirements[material_id]
        result = await db.execute(
            update(Material)
            .where(Material.id == material_id, Material.stock >= amount)
            .values(stock=Material.stock - amount, updated_at=datetime.utcnow())
            .returning(Material.id, Material.name, Material.unit, Material.stock, Material.min_stock)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            insufficient.append(material_id)
            continue
        levels.append(StockLevel(row.id, row.name, row.unit, row.stock, row.min_stock))

    if insufficient:
        names = await db.execute(select(Material.name).where(Material.id.in_(insufficient)))
        missing = sorted(names.scalars().all())
        menus = list(dict.fromkeys(name for m in insufficient for name in (consumers or {}).get(m, ())))
        logger.warning(
            "Conditional stock deduction failed",
            extra={"material_ids": [str(m) for m in insufficient], "materials": missing, "menus": menus},
        )
        raise InsufficientStockError(missing, menu_name=", ".join(menus) or None)

    return levels


async def restock_material(db: AsyncSession, material_id: uuid.UUID, amount: Decimal) -> MaterialResponse:
    if amount <= 0:
        raise InvalidCatalogError("Restock amount must be positive", details={"amount": str(amount)})

    result = await db.execute(
        update(Material)
        .where(Material.id == material_id)
        .values(stock=Material.stock + amount, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFoundError("Material", material_id)
    await db.commit()

    material = await _fetch_material(db, material_id)
    logger.info(
        "Material restocked",
        extra={"material_id": str(material_id), "amount": str(amount), "stock": str(material.stock)},
    )
    return _build_response(material)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def list_materials(db: AsyncSession) -> list[MaterialResponse]:
    result = await db.execute(
        select(Material).order_by(Material.created_at.desc()).execution_options(populate_existing=True)
    )
    return [_build_response(m) for m in result.scalars().all()]


async def get_material(db: AsyncSession, material_id: uuid.UUID) -> MaterialResponse:
    """Single material, including the menus whose recipes use it."""
    material = await _fetch_material(db, material_id)
    return _build_response(material, await _usages(db, material_id))


async def create_material(db: AsyncSession, data: MaterialCreate) -> MaterialResponse:
    name = _require_text("name", data.name)
    unit = _require_text("unit", data.unit)
    _require_non_negative("stock", data.stock)
    _require_non_negative("min_stock", data.min_stock)

    material = Material(name=name, unit=unit, stock=data.stock, min_stock=data.min_stock)
    db.add(material)
    await db.commit()
    logger.info("Material created", extra={"material_id": str(material.id), "material_name": name})
    return _build_response(await _fetch_material(db, material.id))


async def update_material(db: AsyncSession, material_id: uuid.UUID, data: MaterialUpdate) -> MaterialResponse:
    """Edit descriptive fields. Stock only moves through restock and order deductions."""
    material = await _fetch_material(db, material_id)
    if data.name is not None:
        material.name = _require_text("name", data.name)
    if data.unit is not None:
        material.unit = _require_text("unit", data.unit)
    if data.min_stock is not None:
        _require_non_negative("min_stock", data.min_stock)
        material.min_stock = data.min_stock
    await db.commit()
    return _build_response(await _fetch_material(db, material_id))


async def delete_material(db: AsyncSession, material_id: uuid.UUID) -> None:
    material = await _fetch_material(db, material_id)

    used_by = await _usages(db, material_id)
    if used_by:
        # Built before the rollback, which expires ``material``.
        error = MaterialInUseError(
            f"Material '{material.name}' is used in {len(used_by)} menu recipe(s)",
            details={"material_id": str(material_id), "menus": [usage.menu_name for usage in used_by]},
        )
        await db.rollback()
        raise error

    await db.delete(material)
    await db.commit()
    logger.info("Material deleted", extra={"material_id": str(material_id)})
