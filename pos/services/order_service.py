import logging
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from aiokafka import AIOKafkaProducer
from opentelemetry import trace
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pos.config import settings
from pos.errors import (
    InsufficientStockError,
    InvalidOrderError,
    InvalidStatusTransitionError,
    MenuUnavailableError,
    NotFoundError,
    OrderNumberConflictError,
    PosError,
    UnauthorizedError,
)
from pos.events import MaterialLowStockEvent, OrderItemEvent, OrderPlacedEvent, OrderStatusChangedEvent
from pos.metrics import LOW_STOCK_ALERTS, ORDER_OUTCOMES, ORDER_PLACEMENT_TIME, ORDER_STATUS_CHANGES
from pos.models.menu import Menu
from pos.models.order import TERMINAL_STATUSES, Order, OrderItem, OrderStatus, OrderType
from pos.schemas.order import (
    Actor,
    CreatedByResponse,
    OrderCreate,
    OrderItemResponse,
    OrderResponse,
)
from pos.services import event_publisher
from pos.services.availability import evaluate, load_menus, stock_snapshot
from pos.services.inventory_service import StockLevel, deduct_stock

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class _PlacedOrder:
    response: OrderResponse
    stock_levels: list[StockLevel]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_response(order: Order) -> OrderResponse:
    items = [
        OrderItemResponse(
            id=item.id,
            menu_id=item.menu_id,
            menu_name=item.menu.name if item.menu else "Unknown",
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
        )
        for item in order.items
    ]

    created_by = None
    if order.created_by_id is not None:
        created_by = CreatedByResponse(id=order.created_by_id, name=order.created_by_name)

    return OrderResponse(
        id=order.id,
        order_no=order.order_no,
        customer_name=order.customer_name,
        status=order.status,
        type=order.type,
        total_price=order.total_price,
        created_by=created_by,
        created_at=order.created_at,
        updated_at=order.updated_at,
        items=items,
    )


async def _fetch_order(db: AsyncSession, order_id: uuid.UUID) -> Order | None:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items).selectinload(OrderItem.menu))
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


def _now_ms() -> int:
    return int(time.time() * 1000)


def _format_order_no(timestamp_ms: int, sequence: int) -> str:
    return f"ORD-{timestamp_ms}-{sequence}"


def _validate_request(order_data: OrderCreate, actor: Actor | None) -> None:
    if not order_data.items:
        raise InvalidOrderError("Order must contain at least one item")

    for item in order_data.items:
        if item.quantity <= 0:
            raise InvalidOrderError(
                "Item quantity must be positive",
                details={"menu_id": str(item.menu_id), "quantity": item.quantity},
            )

    if order_data.type == OrderType.SELF_ORDER:
        if not order_data.customer_name or not order_data.customer_name.strip():
            raise InvalidOrderError("Customer name is required for self-order")
    elif actor is None:
        raise UnauthorizedError("Cashier orders require an authenticated staff member")


async def _precheck(db: AsyncSession, order_data: OrderCreate) -> dict[uuid.UUID, Menu]:
    """
    Fail fast on the first line that cannot be served.

    This is a user-facing rejection only; the conditional decrement at commit
    time is what keeps stock from going negative.
    """
    menu_ids = list(dict.fromkeys(item.menu_id for item in order_data.items))
    menus = {menu.id: menu for menu in await load_menus(db, menu_ids)}
    stock = await stock_snapshot(
        db, {line.material_id for menu in menus.values() for line in menu.recipe_lines}
    )

    for item in order_data.items:
        menu = menus.get(item.menu_id)
        if menu is None:
            raise NotFoundError("Menu", item.menu_id)
        if not menu.is_active:
            raise MenuUnavailableError(menu.name)
        availability = evaluate(menu, stock, item.quantity)
        if not availability.can_serve:
            raise InsufficientStockError(availability.missing_materials or [], menu_name=menu.name)

    return menus


async def _price_lines(db: AsyncSession, order_data: OrderCreate) -> tuple[list[dict], Decimal]:
    """Snapshot the current menu prices into order lines."""
    menu_ids = {item.menu_id for item in order_data.items}
    result = await db.execute(select(Menu.id, Menu.price).where(Menu.id.in_(menu_ids)))
    prices = {row.id: row.price for row in result}

    line_items: list[dict] = []
    total = Decimal("0.00")
    for item in order_data.items:
        unit_price = prices.get(item.menu_id)
        if unit_price is None:
            raise NotFoundError("Menu", item.menu_id)
        subtotal = unit_price * item.quantity
        total += subtotal
        line_items.append(
            {
                "menu_id": item.menu_id,
                "quantity": item.quantity,
                "unit_price": unit_price,
                "subtotal": subtotal,
            }
        )
    return line_items, total


def _material_requirements(order_data: OrderCreate, menus: dict[uuid.UUID, Menu]) -> dict[uuid.UUID, Decimal]:
    """Total amount of each material the order consumes, summed across lines."""
    requirements: dict[uuid.UUID, Decimal] = defaultdict(Decimal)
    for item in order_data.items:
        for line in menus[item.menu_id].recipe_lines:
            requirements[line.material_id] += line.quantity * item.quantity
    return dict(requirements)


def _material_consumers(order_data: OrderCreate, menus: dict[uuid.UUID, Menu]) -> dict[uuid.UUID, list[str]]:
    consumers: dict[uuid.UUID, list[str]] = defaultdict(list)
    for menu_id in dict.fromkeys(item.menu_id for item in order_data.items):
        menu = menus[menu_id]
        for line in menu.recipe_lines:
            consumers[line.material_id].append(menu.name)
    return dict(consumers)


async def _insert_order(
    db: AsyncSession,
    order_data: OrderCreate,
    actor: Actor | None,
    total: Decimal,
) -> Order:
    """
    Insert the order row under a freshly generated order number.

    Each attempt runs in a SAVEPOINT so a unique-constraint collision on
    ``order_no`` only discards that attempt, not the surrounding transaction.
    """
    is_self_order = order_data.type == OrderType.SELF_ORDER
    base_count = await db.scalar(select(func.count()).select_from(Order))

    for attempt in range(settings.order_number_max_attempts):
        order_no = _format_order_no(_now_ms(), base_count + 1 + attempt)
        order = Order(
            order_no=order_no,
            customer_name=order_data.customer_name.strip() if order_data.customer_name else None,
            total_price=total,
            status=OrderStatus.PENDING,
            type=order_data.type,
            created_by_id=None if is_self_order else actor.id,
            created_by_name=None if is_self_order else actor.name,
        )
        try:
            async with db.begin_nested():
                db.add(order)
                await db.flush()
        except IntegrityError:
            logger.warning(
                "Order number already taken, regenerating",
                extra={"order_no": order_no, "attempt": attempt + 1},
            )
            continue
        return order

    raise OrderNumberConflictError(
        "Could not allocate a unique order number",
        details={"attempts": settings.order_number_max_attempts},
    )


async def _place(db: AsyncSession, order_data: OrderCreate, actor: Actor | None) -> _PlacedOrder:
    # 1. Pre-check every line against one stock snapshot
    menus = await _precheck(db, order_data)

    # 2. Price lines at current menu prices
    line_items, total = await _price_lines(db, order_data)

    # 3. Persist order + items and deduct stock in the same transaction
    order = await _insert_order(db, order_data, actor, total)
    for line in line_items:
        db.add(OrderItem(order_id=order.id, **line))
    await db.flush()

    stock_levels = await deduct_stock(
        db, _material_requirements(order_data, menus), _material_consumers(order_data, menus)
    )

    await db.commit()

    order = await _fetch_order(db, order.id)
    return _PlacedOrder(response=_build_response(order), stock_levels=stock_levels)


async def _announce_low_stock(
    levels: list[StockLevel], request_id: str, producer: AIOKafkaProducer | None
) -> None:
    for level in levels:
        if not level.is_low:
            continue
        LOW_STOCK_ALERTS.labels(level.name).inc()
        logger.warning(
            "Material below minimum stock",
            extra={
                "material_id": str(level.material_id),
                "material": level.name,
                "stock": str(level.stock),
                "min_stock": str(level.min_stock),
                "request_id": request_id,
            },
        )
        await event_publisher.publish(
            producer,
            event_publisher.MATERIAL_LOW_STOCK,
            str(level.material_id),
            MaterialLowStockEvent(
                correlation_id=request_id,
                material_id=level.material_id,
                name=level.name,
                unit=level.unit,
                stock=level.stock,
                min_stock=level.min_stock,
            ),
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def get_order(db: AsyncSession, order_id: uuid.UUID) -> OrderResponse:
    order = await _fetch_order(db, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)
    return _build_response(order)


async def list_orders(db: AsyncSession, status: OrderStatus | None = None) -> list[OrderResponse]:
    stmt = (
        select(Order)
        .options(selectinload(Order.items).selectinload(OrderItem.menu))
        .order_by(Order.created_at.desc())
        .execution_options(populate_existing=True)
    )
    if status is not None:
        stmt = stmt.where(Order.status == status)
    result = await db.execute(stmt)
    return [_build_response(order) for order in result.scalars().all()]


async def place_order(
    db: AsyncSession,
    order_data: OrderCreate,
    actor: Actor | None,
    request_id: str,
    producer: AIOKafkaProducer | None = None,
) -> OrderResponse:
    """
    Validate, price and commit an order, deducting every consumed material.

    Either the order, its lines and all stock deductions are committed
    together, or nothing is. Raises a PosError subclass for every rejection.
    """
    order_type = order_data.type.value
    start = time.perf_counter()

    with tracer.start_as_current_span("order.place") as span:
        span.set_attribute("pos.order.type", order_type)
        span.set_attribute("pos.order.line_count", len(order_data.items))
        try:
            _validate_request(order_data, actor)
            placed = await _place(db, order_data, actor)
        except PosError as exc:
            await db.rollback()
            ORDER_OUTCOMES.labels(order_type, exc.error_code.lower()).inc()
            span.set_attribute("pos.order.rejected", exc.error_code)
            logger.warning(
                "Order rejected: %s",
                exc.message,
                extra={"request_id": request_id, "error_code": exc.error_code, "details": exc.details},
            )
            raise
        except SQLAlchemyError:
            await db.rollback()
            ORDER_OUTCOMES.labels(order_type, "error").inc()
            logger.exception("Order commit failed", extra={"request_id": request_id})
            raise

        order = placed.response
        span.set_attribute("pos.order.id", str(order.id))

    ORDER_PLACEMENT_TIME.observe(time.perf_counter() - start)
    ORDER_OUTCOMES.labels(order_type, "placed").inc()
    logger.info(
        "Order placed",
        extra={
            "order_id": str(order.id),
            "order_no": order.order_no,
            "request_id": request_id,
            "total_price": str(order.total_price),
            "item_count": len(order.items),
        },
    )

    await _announce_low_stock(placed.stock_levels, request_id, producer)
    await event_publisher.publish(
        producer,
        event_publisher.ORDER_PLACED,
        str(order.id),
        OrderPlacedEvent(
            correlation_id=request_id,
            order_id=order.id,
            order_no=order.order_no,
            order_type=order_type,
            customer_name=order.customer_name,
            total_price=order.total_price,
            items=[
                OrderItemEvent(
                    menu_id=item.menu_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    subtotal=item.subtotal,
                )
                for item in order.items
            ],
        ),
    )
    return order


async def update_order_status(
    db: AsyncSession,
    order_id: uuid.UUID,
    status: OrderStatus,
    request_id: str,
    producer: AIOKafkaProducer | None = None,
) -> OrderResponse:
    """
    Move a pending order to a terminal status.

    Stock is not touched: it was deducted when the order was placed and a
    cancellation does not restock.
    """
    if status not in TERMINAL_STATUSES:
        raise InvalidOrderError(
            "Order status can only be changed to completed or cancelled",
            details={"status": status.value},
        )

    # Conditional update so two concurrent transitions cannot both win.
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == OrderStatus.PENDING)
        .values(status=status, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        current = await db.scalar(select(Order.status).where(Order.id == order_id))
        await db.rollback()
        if current is None:
            raise NotFoundError("Order", order_id)
        raise InvalidStatusTransitionError(
            f"Order is already {current.value}",
            details={"order_id": str(order_id), "status": current.value, "requested": status.value},
        )
    await db.commit()

    ORDER_STATUS_CHANGES.labels(status.value).inc()
    order = await _fetch_order(db, order_id)
    logger.info(
        "Order status changed",
        extra={"order_id": str(order_id), "status": status.value, "request_id": request_id},
    )

    await event_publisher.publish(
        producer,
        event_publisher.ORDER_STATUS_CHANGED,
        str(order_id),
        OrderStatusChangedEvent(
            correlation_id=request_id,
            order_id=order.id,
            order_no=order.order_no,
            status=status.value,
        ),
    )
    return _build_response(order)
