import asyncio
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import update

from pos.errors import InsufficientStockError, InvalidCatalogError, MaterialInUseError, NotFoundError
from pos.models.material import Material
from pos.schemas.material import MaterialCreate, MaterialUpdate
from pos.services import inventory_service
from tests.factories import make_material, make_menu


class TestMaterials:
    async def test_create_and_list(self, db):
        teh = await make_material(db, "Teh", stock=1000, min_stock=100)
        gula = await make_material(db, "Gula", stock=50, min_stock=200)

        materials = {m.id: m for m in await inventory_service.list_materials(db)}

        assert set(materials) == {teh.id, gula.id}
        assert materials[teh.id].stock == Decimal("1000")
        assert materials[teh.id].is_low_stock is False
        assert materials[gula.id].is_low_stock is True

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "Teh", "unit": "gram", "stock": Decimal("-1")},
            {"name": "Teh", "unit": "gram", "min_stock": Decimal("-5")},
            {"name": " ", "unit": "gram"},
            {"name": "Teh", "unit": ""},
        ],
    )
    async def test_create_rejects_invalid_input(self, db, payload):
        with pytest.raises(InvalidCatalogError):
            await inventory_service.create_material(db, MaterialCreate(**payload))

    async def test_update_descriptive_fields(self, db):
        teh = await make_material(db, "Teh", stock=1000)

        updated = await inventory_service.update_material(
            db, teh.id, MaterialUpdate(name="Teh Melati", min_stock=Decimal("250"))
        )

        assert updated.name == "Teh Melati"
        assert updated.unit == "gram"
        assert updated.min_stock == Decimal("250")
        assert updated.stock == Decimal("1000")

    async def test_get_lists_menus_using_material(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        gula = await make_material(db, "Gula", stock=1000)
        es_teh = await make_menu(db, "Es Teh", 5000, [(teh, 10), (gula, 20)])

        detail = await inventory_service.get_material(db, teh.id)

        assert [(u.menu_id, u.menu_name, u.quantity) for u in detail.used_by] == [
            (es_teh.id, "Es Teh", Decimal("10")),
        ]
        assert (await inventory_service.get_material(db, gula.id)).used_by[0].quantity == Decimal("20")
        assert all(m.used_by is None for m in await inventory_service.list_materials(db))

    async def test_get_unused_material_has_no_usages(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        assert (await inventory_service.get_material(db, teh.id)).used_by == []

    async def test_get_unknown_material(self, db):
        with pytest.raises(NotFoundError) as exc_info:
            await inventory_service.get_material(db, uuid.uuid4())
        assert exc_info.value.error_code == "MATERIAL_NOT_FOUND"


class TestRestock:
    async def test_restock_adds_to_stock(self, db):
        teh = await make_material(db, "Teh", stock="10.5")

        restocked = await inventory_service.restock_material(db, teh.id, Decimal("89.5"))

        assert restocked.stock == Decimal("100")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-3")])
    async def test_restock_requires_positive_amount(self, db, amount):
        teh = await make_material(db, "Teh", stock=10)
        with pytest.raises(InvalidCatalogError):
            await inventory_service.restock_material(db, teh.id, amount)

    async def test_restock_unknown_material(self, db):
        with pytest.raises(NotFoundError):
            await inventory_service.restock_material(db, uuid.uuid4(), Decimal("1"))


class TestDeductStock:
    async def test_deducts_and_reports_levels(self, db):
        teh = await make_material(db, "Teh", stock=1000, min_stock=100)
        gula = await make_material(db, "Gula", stock=250, min_stock=200)

        levels = await inventory_service.deduct_stock(db, {teh.id: Decimal("50"), gula.id: Decimal("100")})
        await db.commit()

        by_id = {level.material_id: level for level in levels}
        assert by_id[teh.id].stock == Decimal("950")
        assert by_id[teh.id].is_low is False
        assert by_id[gula.id].stock == Decimal("150")
        assert by_id[gula.id].is_low is True
        assert (await inventory_service.get_material(db, teh.id)).stock == Decimal("950")

    async def test_never_goes_negative(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        kopi = await make_material(db, "Kopi", stock=5)

        with pytest.raises(InsufficientStockError) as exc_info:
            await inventory_service.deduct_stock(db, {teh.id: Decimal("10"), kopi.id: Decimal("15")})
        await db.rollback()

        assert exc_info.value.missing_materials == ["Kopi"]
        assert exc_info.value.menu_name is None
        assert (await inventory_service.get_material(db, teh.id)).stock == Decimal("1000")
        assert (await inventory_service.get_material(db, kopi.id)).stock == Decimal("5")

    async def test_names_menus_drawing_on_short_material(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        kopi = await make_material(db, "Kopi", stock=5)
        consumers = {teh.id: ["Es Teh"], kopi.id: ["Es Kopi", "Kopi Tubruk"]}

        with pytest.raises(InsufficientStockError) as exc_info:
            await inventory_service.deduct_stock(db, {teh.id: Decimal("10"), kopi.id: Decimal("15")}, consumers)
        await db.rollback()

        assert exc_info.value.menu_name == "Es Kopi, Kopi Tubruk"
        assert exc_info.value.details["menu"] == "Es Kopi, Kopi Tubruk"

    async def test_can_drain_to_zero(self, db):
        kopi = await make_material(db, "Kopi", stock=15)

        levels = await inventory_service.deduct_stock(db, {kopi.id: Decimal("15")})
        await db.commit()

        assert levels[0].stock == Decimal("0")


class TestDeleteMaterial:
    async def test_refuses_material_used_by_recipe(self, db):
        teh = await make_material(db, "Teh", stock=1000)
        await make_menu(db, "Es Teh", 5000, [(teh, 10)])
        await make_menu(db, "Teh Tarik", 7000, [(teh, 15)])

        with pytest.raises(MaterialInUseError) as exc_info:
            await inventory_service.delete_material(db, teh.id)

        assert exc_info.value.status_code == 409
        assert "Teh" in exc_info.value.message
        assert exc_info.value.details["menus"] == ["Es Teh", "Teh Tarik"]
        assert (await inventory_service.get_material(db, teh.id)).name == "Teh"

    async def test_deletes_unused_material(self, db):
        teh = await make_material(db, "Teh", stock=1000)

        await inventory_service.delete_material(db, teh.id)

        with pytest.raises(NotFoundError):
            await inventory_service.get_material(db, teh.id)


class TestReadSessions:
    async def test_reads_do_not_wait_for_open_writer(self, session_factory, read_session_factory):
        async with session_factory() as writer:
            teh = await make_material(writer, "Teh", stock=100)
            await writer.execute(update(Material).where(Material.id == teh.id).values(stock=Decimal("1")))

            # The writer now holds SQLite's write lock until it finishes.
            async with read_session_factory() as reader:
                materials = await asyncio.wait_for(inventory_service.list_materials(reader), timeout=2)

            assert [m.stock for m in materials] == [Decimal("100")]
            await writer.rollback()
