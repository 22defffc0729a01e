import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pos.database import AsyncSessionLocal
from pos.errors import InvalidCatalogError, NotFoundError
from pos.models.material import Material
from pos.models.menu import Menu, RecipeLine
from pos.schemas.menu import MenuCreate, MenuResponse, MenuUpdate, RecipeLineCreate, RecipeLineResponse
from pos.services.availability import is_available, list_menus_with_availability, load_menu, stock_snapshot

logger = logging.getLogger(__name__)

_MATERIAL_SEED = [
    {"name": "Teh", "unit": "gram", "stock": Decimal("1000"), "min_stock": Decimal("100")},
    {"name": "Gula", "unit": "gram", "stock": Decimal("2000"), "min_stock": Decimal("200")},
    {"name": "Air", "unit": "ml", "stock": Decimal("10000"), "min_stock": Decimal("1000")},
    {"name": "Kopi", "unit": "gram", "stock": Decimal("500"), "min_stock": Decimal("50")},
    {"name": "Susu", "unit": "ml", "stock": Decimal("3000"), "min_stock": Decimal("300")},
]

# (name, description, price, [(material name, quantity per unit)])
_MENU_SEED = [
    ("Es Teh Manis", "Teh manis dingin segar", Decimal("5000"), [("Teh", 10), ("Gula", 20), ("Air", 250)]),
    ("Es Kopi Susu", "Kopi susu dingin nikmat", Decimal("8000"), [("Kopi", 15), ("Susu", 100), ("Gula", 15)]),
]


async def seed_catalog() -> None:
    """Populate materials and menus if the catalog is empty. Called once on startup."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Material).limit(1))
        if result.scalars().first() is not None:
            return
        materials = {data["name"]: Material(**data) for data in _MATERIAL_SEED}
        db.add_all(materials.values())
        for name, description, price, recipe in _MENU_SEED:
            db.add(
                Menu(
                    name=name,
                    description=description,
                    price=price,
                    recipe_lines=[
                        RecipeLine(material=materials[material], quantity=Decimal(quantity), position=position)
                        for position, (material, quantity) in enumerate(recipe)
                    ],
                )
            )
        await db.commit()
        logger.info("Seeded %d materials and %d menus", len(_MATERIAL_SEED), len(_MENU_SEED))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_response(menu: Menu, available: bool) -> MenuResponse:
    return MenuResponse(
        id=menu.id,
        name=menu.name,
        description=menu.description,
        price=menu.price,
        is_active=menu.is_active,
        is_available=available,
        created_at=menu.created_at,
        updated_at=menu.updated_at,
        materials=[
            RecipeLineResponse(
                material_id=line.material_id,
                material_name=line.material.name,
                unit=line.material.unit,
                quantity=line.quantity,
            )
            for line in menu.recipe_lines
        ],
    )


async def _fetch_menu(db: AsyncSession, menu_id: uuid.UUID) -> Menu:
    menu = await load_menu(db, menu_id)
    if menu is None:
        raise NotFoundError("Menu", menu_id)
    return menu


async def _menu_response(db: AsyncSession, menu_id: uuid.UUID) -> MenuResponse:
    menu = await _fetch_menu(db, menu_id)
    stock = await stock_snapshot(db, [line.material_id for line in menu.recipe_lines])
    return _build_response(menu, is_available(menu, stock))


def _validate_price(price: Decimal) -> None:
    if price <= 0:
        raise InvalidCatalogError("Menu price must be positive", details={"price": str(price)})


async def _build_recipe(db: AsyncSession, lines: list[RecipeLineCreate]) -> list[RecipeLine]:
    seen: set[uuid.UUID] = set()
    for line in lines:
        if line.quantity <= 0:
            raise InvalidCatalogError(
                "Recipe quantity must be positive",
                details={"material_id": str(line.material_id), "quantity": str(line.quantity)},
            )
        if line.material_id in seen:
            raise InvalidCatalogError(
                "A material may appear only once per recipe",
                details={"material_id": str(line.material_id)},
            )
        seen.add(line.material_id)

    if seen:
        result = await db.execute(select(Material.id).where(Material.id.in_(seen)))
        unknown = seen - set(result.scalars().all())
        if unknown:
            raise NotFoundError("Material", sorted(unknown)[0])

    return [
        RecipeLine(material_id=line.material_id, quantity=line.quantity, position=position)
        for position, line in enumerate(lines)
    ]


async def _replace_lines(db: AsyncSession, menu: Menu, lines: list[RecipeLineCreate]) -> None:
    new_lines = await _build_recipe(db, lines)
    # Flush the deletes first; the unit of work would otherwise insert before
    # deleting and trip the (menu_id, material_id) unique constraint.
    menu.recipe_lines.clear()
    await db.flush()
    menu.recipe_lines.extend(new_lines)
    await db.flush()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def list_menus(db: AsyncSession) -> list[MenuResponse]:
    return [_build_response(menu, available) for menu, available in await list_menus_with_availability(db)]


async def get_menu(db: AsyncSession, menu_id: uuid.UUID) -> MenuResponse:
    return await _menu_response(db, menu_id)


async def create_menu(db: AsyncSession, data: MenuCreate) -> MenuResponse:
    if not data.name or not data.name.strip():
        raise InvalidCatalogError("Menu name is required")
    _validate_price(data.price)

    try:
        menu = Menu(
            name=data.name.strip(),
            description=data.description,
            price=data.price,
            is_active=data.is_active,
            recipe_lines=await _build_recipe(db, data.materials),
        )
        db.add(menu)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Menu created",
        extra={"menu_id": str(menu.id), "menu_name": menu.name, "recipe_lines": len(data.materials)},
    )
    return await _menu_response(db, menu.id)


async def update_menu(db: AsyncSession, menu_id: uuid.UUID, data: MenuUpdate) -> MenuResponse:
    """Partial update; a given ``materials`` list replaces the whole recipe in the same transaction."""
    try:
        menu = await _fetch_menu(db, menu_id)
        if data.name is not None:
            if not data.name.strip():
                raise InvalidCatalogError("Menu name is required")
            menu.name = data.name.strip()
        if data.description is not None:
            menu.description = data.description
        if data.price is not None:
            _validate_price(data.price)
            menu.price = data.price
        if data.is_active is not None:
            menu.is_active = data.is_active
        if data.materials is not None:
            await _replace_lines(db, menu, data.materials)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Menu updated", extra={"menu_id": str(menu_id), "recipe_replaced": data.materials is not None})
    return await _menu_response(db, menu_id)


async def replace_recipe(db: AsyncSession, menu_id: uuid.UUID, lines: list[RecipeLineCreate]) -> MenuResponse:
    try:
        menu = await _fetch_menu(db, menu_id)
        await _replace_lines(db, menu, lines)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Menu recipe replaced", extra={"menu_id": str(menu_id), "recipe_lines": len(lines)})
    return await _menu_response(db, menu_id)


async def deactivate_menu(db: AsyncSession, menu_id: uuid.UUID) -> MenuResponse:
    """Soft delete: the menu stays for order history but is never available again until reactivated."""
    menu = await _fetch_menu(db, menu_id)
    menu.is_active = False
    await db.commit()
    logger.info("Menu deactivated", extra={"menu_id": str(menu_id)})
    return await _menu_response(db, menu_id)
