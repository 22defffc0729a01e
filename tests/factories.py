from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from pos.schemas.material import MaterialCreate, MaterialResponse
from pos.schemas.menu import MenuCreate, MenuResponse, RecipeLineCreate
from pos.schemas.order import Actor, OrderCreate, OrderItemCreate
from pos.services import inventory_service, menu_service

CASHIER = Actor(id="user-kasir", name="Kasir 1", role="kasir")


async def make_material(
    db: AsyncSession, name: str, stock, min_stock=0, unit: str = "gram"
) -> MaterialResponse:
    return await inventory_service.create_material(
        db, MaterialCreate(name=name, unit=unit, stock=Decimal(str(stock)), min_stock=Decimal(str(min_stock)))
    )


async def make_menu(
    db: AsyncSession, name: str, price, recipe=(), is_active: bool = True
) -> MenuResponse:
    """``recipe`` is a sequence of (material, quantity per unit) pairs."""
    return await menu_service.create_menu(
        db,
        MenuCreate(
            name=name,
            price=Decimal(str(price)),
            is_active=is_active,
            materials=[
                RecipeLineCreate(material_id=material.id, quantity=Decimal(str(quantity)))
                for material, quantity in recipe
            ],
        ),
    )


def cashier_order(*lines) -> OrderCreate:
    """``lines`` are (menu, quantity) pairs."""
    return OrderCreate(items=[OrderItemCreate(menu_id=menu.id, quantity=qty) for menu, qty in lines])


def self_order(customer_name, *lines) -> OrderCreate:
    return OrderCreate(
        items=[OrderItemCreate(menu_id=menu.id, quantity=qty) for menu, qty in lines],
        customer_name=customer_name,
        type="self-order",
    )


class FakeProducer:
    """Records what would have been sent to Kafka."""

    def __init__(self, error: Exception | None = None):
        self.sent: list[tuple[str, bytes, bytes]] = []
        self.error = error

    async def send_and_wait(self, topic, key=None, value=None, headers=None):
        if self.error is not None:
            raise self.error
        self.sent.append((topic, key, value))

    def topics(self) -> list[str]:
        return [topic for topic, _, _ in self.sent]
