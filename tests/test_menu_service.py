import uuid
from decimal import Decimal

import pytest

from pos.errors import InvalidCatalogError, NotFoundError
from pos.schemas.menu import MenuCreate, MenuUpdate, RecipeLineCreate
from pos.services import inventory_service, menu_service
from tests.factories import make_material, make_menu


class TestCreateMenu:
    async def test_create_with_recipe(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        gula = await make_material(db, "Gula", stock=2000)

        menu = await make_menu(db, "Es Teh Manis", 5000, [(teh, 10), (gula, 20)])

        assert menu.is_active is True
        assert menu.is_available is True
        assert [(m.material_name, m.quantity) for m in menu.materials] == [
            ("Teh", Decimal("10")),
            ("Gula", Decimal("20")),
        ]

    async def test_menu_without_recipe_is_available(self, db):
        menu = await make_menu(db, "Air Putih", 1000)
        assert menu.is_available is True
        assert menu.materials == []

    async def test_rejects_duplicate_material(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        with pytest.raises(InvalidCatalogError):
            await make_menu(db, "Teh Ganda", 7000, [(teh, 10), (teh, 5)])

    async def test_rejects_unknown_material(self, db):
        data = MenuCreate(
            name="Misteri",
            price=Decimal("1000"),
            materials=[RecipeLineCreate(material_id=uuid.uuid4(), quantity=Decimal("1"))],
        )
        with pytest.raises(NotFoundError):
            await menu_service.create_menu(db, data)

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-100")])
    async def test_rejects_non_positive_price(self, db, price):
        with pytest.raises(InvalidCatalogError):
            await menu_service.create_menu(db, MenuCreate(name="Gratis", price=price))

    async def test_rejects_non_positive_recipe_quantity(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        with pytest.raises(InvalidCatalogError):
            await make_menu(db, "Es Teh", 5000, [(teh, 0)])


class TestUpdateMenu:
    async def test_replaces_whole_recipe(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        gula = await make_material(db, "Gula", stock=2000)
        air = await make_material(db, "Air", stock=10000, unit="ml")
        menu = await make_menu(db, "Es Teh", 5000, [(teh, 10), (gula, 20)])

        updated = await menu_service.update_menu(
            db,
            menu.id,
            MenuUpdate(
                price=Decimal("6000"),
                materials=[
                    RecipeLineCreate(material_id=teh.id, quantity=Decimal("12")),
                    RecipeLineCreate(material_id=air.id, quantity=Decimal("250")),
                ],
            ),
        )

        assert updated.price == Decimal("6000")
        assert updated.name == "Es Teh"
        assert [(m.material_id, m.quantity) for m in updated.materials] == [
            (teh.id, Decimal("12")),
            (air.id, Decimal("250")),
        ]

    async def test_failed_replacement_keeps_old_recipe(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        menu = await make_menu(db, "Es Teh", 5000, [(teh, 10)])

        with pytest.raises(NotFoundError):
            await menu_service.replace_recipe(
                db, menu.id, [RecipeLineCreate(material_id=uuid.uuid4(), quantity=Decimal("1"))]
            )

        current = await menu_service.get_menu(db, menu.id)
        assert [(m.material_id, m.quantity) for m in current.materials] == [(teh.id, Decimal("10"))]

    async def test_recipe_change_updates_availability(self, db):
        kopi = await make_material(db, "Kopi", stock=10)
        menu = await make_menu(db, "Kopi Hitam", 6000, [(kopi, 5)])

        updated = await menu_service.replace_recipe(
            db, menu.id, [RecipeLineCreate(material_id=kopi.id, quantity=Decimal("15"))]
        )

        assert updated.is_available is False

    async def test_update_unknown_menu(self, db):
        with pytest.raises(NotFoundError):
            await menu_service.update_menu(db, uuid.uuid4(), MenuUpdate(name="Baru"))


class TestDeactivateMenu:
    async def test_deactivated_menu_is_unavailable(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        menu = await make_menu(db, "Es Teh", 5000, [(teh, 10)])

        deactivated = await menu_service.deactivate_menu(db, menu.id)

        assert deactivated.is_active is False
        assert deactivated.is_available is False
        listed = {m.id: m for m in await menu_service.list_menus(db)}
        assert listed[menu.id].is_available is False

    async def test_reactivation_restores_availability(self, db):
        menu = await make_menu(db, "Air Putih", 1000)
        await menu_service.deactivate_menu(db, menu.id)

        reactivated = await menu_service.update_menu(db, menu.id, MenuUpdate(is_active=True))

        assert reactivated.is_available is True


class TestSeedCatalog:
    async def test_seeds_once(self, db, session_factory, monkeypatch):
        monkeypatch.setattr(menu_service, "AsyncSessionLocal", session_factory)

        await menu_service.seed_catalog()
        await menu_service.seed_catalog()

        materials = {m.name: m for m in await inventory_service.list_materials(db)}
        menus = {m.name: m for m in await menu_service.list_menus(db)}
        assert set(materials) == {"Teh", "Gula", "Air", "Kopi", "Susu"}
        assert set(menus) == {"Es Teh Manis", "Es Kopi Susu"}
        assert menus["Es Teh Manis"].price == Decimal("5000")
        assert [(m.material_name, m.quantity) for m in menus["Es Teh Manis"].materials] == [
            ("Teh", Decimal("10")),
            ("Gula", Decimal("20")),
            ("Air", Decimal("250")),
        ]
        assert all(menu.is_available for menu in menus.values())
