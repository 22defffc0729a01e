# Import all models here so SQLAlchemy registers them with Base.metadata
from pos.models.material import Material
from pos.models.menu import Menu, RecipeLine
from pos.models.order import Order, OrderItem, OrderStatus, OrderType

__all__ = [
    "Material",
    "Menu",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderType",
    "RecipeLine",
]
