import logging
from contextlib import asynccontextmanager

from aiokafka import AIOKafkaProducer
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from pos.config import settings
from pos.database import Base, engine
from pos.errors import PosError
from pos.middleware.metrics import MetricsMiddleware
from pos.middleware.request_id import RequestIDMiddleware
from pos.routers import materials, menus, orders
from pos.services.menu_service import seed_catalog
from pos.utils.logging import setup_logging
from pos.utils.tracing import setup_tracing

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

if settings.tracing_enabled:
    setup_tracing("pos", settings.otlp_endpoint)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up, creating database tables")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.tracing_enabled:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)

    if settings.seed_catalog:
        await seed_catalog()

    producer = None
    if settings.kafka_enabled:
        producer = AIOKafkaProducer(
            bootstrap_servers=settings.kafka_bootstrap_servers,
            enable_idempotence=True,
        )
        await producer.start()
    app.state.kafka_producer = producer
    logger.info("Startup complete", extra={"kafka_enabled": producer is not None})

    yield

    if producer is not None:
        await producer.stop()
    await engine.dispose()
    logger.info("Shutting down")


app = FastAPI(
    title="POS Inventory & Ordering",
    description="Menu availability and stock-deducting order placement",
    version="1.0.0",
    lifespan=lifespan,
)

if settings.tracing_enabled:
    FastAPIInstrumentor.instrument_app(app)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)
app.include_router(menus.router, prefix="/menus", tags=["menus"])
app.include_router(materials.router, prefix="/materials", tags=["materials"])
app.include_router(orders.router, prefix="/orders", tags=["orders"])

# Expose Prometheus metrics at /metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.exception_handler(PosError)
async def pos_error_handler(request: Request, exc: PosError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Unhandled storage error",
        exc_info=exc,
        extra={"request_id": getattr(request.state, "request_id", "unknown"), "path": request.url.path},
    )
    return JSONResponse(
        status_code=500,
        content={"error_code": "STORAGE_ERROR", "message": "The request could not be completed", "details": {}},
    )


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
