import logging

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from pos.events import EventBase
from pos.metrics import EVENTS_PUBLISHED
from pos.utils.tracing import kafka_trace_headers

logger = logging.getLogger(__name__)

ORDER_PLACED = "order.placed"
ORDER_STATUS_CHANGED = "order.status_changed"
MATERIAL_LOW_STOCK = "material.low_stock"


async def publish(producer: AIOKafkaProducer | None, topic: str, key: str, event: EventBase) -> None:
    """
    Publish an event for a change that is already committed.

    Delivery failures are logged and counted; they never undo the change that
    produced the event.
    """
    if producer is None:
        return

    try:
        await producer.send_and_wait(
            topic,
            key=key.encode(),
            value=event.model_dump_json().encode(),
            headers=kafka_trace_headers(),
        )
    except KafkaError as exc:
        EVENTS_PUBLISHED.labels(topic, "failed").inc()
        logger.error(
            "Failed to publish %s event",
            topic,
            extra={"key": key, "correlation_id": event.correlation_id, "error": str(exc)},
        )
        return

    EVENTS_PUBLISHED.labels(topic, "ok").inc()
    logger.info(
        "Published %s event",
        topic,
        extra={"key": key, "correlation_id": event.correlation_id},
    )
