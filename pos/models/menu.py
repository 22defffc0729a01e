import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pos.database import Base
from pos.models.material import Material


class Menu(Base):
    __tablename__ = "menus"
    __table_args__ = (CheckConstraint("price > 0", name="ck_menus_price_positive"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    recipe_lines: Mapped[list["RecipeLine"]] = relationship(
        "RecipeLine",
        back_populates="menu",
        cascade="all, delete-orphan",
        order_by="RecipeLine.position",
    )


class RecipeLine(Base):
    """Quantity of one material consumed per unit of a menu sold."""

    __tablename__ = "recipe_lines"
    __table_args__ = (
        UniqueConstraint("menu_id", "material_id", name="uq_recipe_lines_menu_material"),
        CheckConstraint("quantity > 0", name="ck_recipe_lines_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    menu_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("menus.id", ondelete="CASCADE"), nullable=False)
    material_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("materials.id"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    position: Mapped[int] = mapped_column(default=0, nullable=False)

    menu: Mapped["Menu"] = relationship("Menu", back_populates="recipe_lines")
    material: Mapped["Material"] = relationship("Material")
