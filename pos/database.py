from collections.abc import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from pos.config import settings

READ_ONLY_OPTION = "pos_read_only"


class Base(DeclarativeBase):
    pass


def configure_sqlite(engine: AsyncEngine) -> None:
    """
    Make SQLite take the write lock when a writing transaction begins.

    With the default deferred BEGIN two transactions that both read before
    writing deadlock on the lock upgrade; BEGIN IMMEDIATE makes the second
    writer wait for the first to commit instead. Sessions bound through
    ``read_only_engine`` keep the deferred BEGIN so reads never queue behind
    a writer.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get(READ_ONLY_OPTION):
            conn.exec_driver_sql("BEGIN")
        else:
            conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str) -> AsyncEngine:
    engine = create_async_engine(database_url, echo=False)
    configure_sqlite(engine)
    return engine


def read_only_engine(engine: AsyncEngine) -> AsyncEngine:
    """Same pool, tagged so SQLite opens its transactions without the write lock."""
    return engine.execution_options(**{READ_ONLY_OPTION: True})


engine = build_engine(settings.database_url)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)
AsyncReadSessionLocal = async_sessionmaker(read_only_engine(engine), expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


async def get_read_db() -> AsyncIterator[AsyncSession]:
    """Session for handlers that only read."""
    async with AsyncReadSessionLocal() as session:
        yield session
