"""Database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from logging import getLogger
from typing import Any

from orjson import dumps, loads
from sqlalchemy import event, make_url, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from app.configs import Settings, file_logger

logger = file_logger(getLogger(__name__))

STATEMENT_TIMEOUT_MS = 30000

type SessionMaker = async_sessionmaker[AsyncSession]


def json_serializer(value: Any) -> str:
    """JSON text as stored in JSON columns: compact, non-ASCII kept as UTF-8."""
    return dumps(value).decode()


def _configure_engine_events(engine: AsyncEngine) -> None:
    """Configure connection pool events for monitoring."""

    @event.listens_for(engine.sync_engine, "checkout")
    def on_checkout(
        dbapi_connection: object,
        connection_record: object,
        connection_proxy: object,
    ) -> None:
        logger.debug("Connection checked out from pool")

    @event.listens_for(engine.sync_engine, "checkin")
    def on_checkin(dbapi_connection: object, connection_record: object) -> None:
        logger.debug("Connection returned to pool")


def _engine_kwargs(settings: Settings) -> dict[str, Any]:
    url = make_url(settings.DATABASE_URL)
    if url.get_backend_name() == "sqlite":
        # aiosqlite has no pool sizing; busy timeout lets concurrent writers queue
        return {"connect_args": {"timeout": 30}}
    return {
        "pool_size": settings.POOL_SIZE,
        "max_overflow": settings.MAX_OVERFLOW,
        "pool_timeout": settings.POOL_TIMEOUT,
        "pool_recycle": settings.POOL_RECYCLE,
        "pool_pre_ping": True,
        "connect_args": {
            "command_timeout": STATEMENT_TIMEOUT_MS / 1000,
            "server_settings": {
                "statement_timeout": str(STATEMENT_TIMEOUT_MS),
                "lock_timeout": str(STATEMENT_TIMEOUT_MS),
            },
        },
    }


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for ``settings.DATABASE_URL``."""
    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        json_serializer=json_serializer,
        json_deserializer=loads,
        **_engine_kwargs(settings),
    )
    if settings.DEBUG:
        _configure_engine_events(engine)
    return engine


def create_session_maker(engine: AsyncEngine) -> SessionMaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def transaction(session_maker: SessionMaker) -> AsyncGenerator[AsyncSession]:
    """
    Context manager for explicit transaction management.

    Commits on successful exit, rolls back on exception.

    Example:
        ```python
        async with transaction(context.sessions) as session:
            session.add(BlogDB(title="Hello"))
        ```
    """
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables defined in SQLModel models.

    Note:
        This is a simple initialization for development and tests.
        For production, use the Alembic migrations.
    """
    # Import all models to ensure they are registered
    from app.models import BlogDB  # noqa: F401, PLC0415

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database initialized successfully!")


async def ping_db(session_maker: SessionMaker) -> bool:
    """Run ``SELECT 1`` against the metadata store."""
    async with session_maker() as session:
        await session.execute(text("SELECT 1"))
    return True


async def close_db(engine: AsyncEngine) -> None:
    """Dispose the engine's connection pool."""
    await engine.dispose()
    logger.info("Database connections closed")
