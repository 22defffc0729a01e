import os

# Settings are read at import time; keep tests away from Kafka, Jaeger and Postgres.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["KAFKA_ENABLED"] = "false"
os.environ["TRACING_ENABLED"] = "false"
os.environ["SEED_CATALOG"] = "false"

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

import pos.models  # noqa: F401  registers tables on Base.metadata
from pos.database import Base, build_engine, read_only_engine
from tests.factories import FakeProducer


@pytest.fixture
async def engine(tmp_path):
    # File-backed so concurrent sessions get their own connections.
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'pos.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def read_session_factory(engine):
    return async_sessionmaker(read_only_engine(engine), expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def producer():
    return FakeProducer()
