import logging
import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from pos.auth import get_actor
from pos.database import get_db, get_read_db
from pos.models.order import OrderStatus
from pos.schemas.order import Actor, OrderCreate, OrderResponse, OrderStatusUpdate
from pos.services import order_service

router = APIRouter()
logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _producer(request: Request):
    return getattr(request.app.state, "kafka_producer", None)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    body: OrderCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor | None = Depends(get_actor),
) -> OrderResponse:
    request_id = _request_id(request)
    logger.info(
        "Received place_order request",
        extra={
            "request_id": request_id,
            "order_type": body.type.value,
            "item_count": len(body.items),
            "actor_id": actor.id if actor else None,
        },
    )
    return await order_service.place_order(db, body, actor, request_id, _producer(request))


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_read_db),
) -> list[OrderResponse]:
    return await order_service.list_orders(db, status_filter)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_read_db),
) -> OrderResponse:
    logger.info(
        "Received get_order request",
        extra={"request_id": _request_id(request), "order_id": str(order_id)},
    )
    return await order_service.get_order(db, order_id)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    body: OrderStatusUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    request_id = _request_id(request)
    logger.info(
        "Received update_order_status request",
        extra={"request_id": request_id, "order_id": str(order_id), "status": body.status.value},
    )
    return await order_service.update_order_status(db, order_id, body.status, request_id, _producer(request))
