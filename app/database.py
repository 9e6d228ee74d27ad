"""Database configuration, connection management and transaction scopes."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings
from app.core.exceptions import LockTimeoutError
from app.models import metadata

logger = structlog.get_logger(__name__)

# PostgreSQL SQLSTATE raised when lock_timeout expires
LOCK_NOT_AVAILABLE = "55P03"


def build_engine(url: str | None = None, **kwargs: Any) -> AsyncEngine:
    """
    Create an async engine for PostgreSQL (asyncpg) or SQLite (aiosqlite).

    Args:
        url: Async database URL, defaults to the configured one
        **kwargs: Extra engine options (e.g. ``poolclass``)

    Returns:
        Configured async engine
    """
    url = url or settings.async_database_url

    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            echo=settings.debug,
            connect_args={"timeout": settings.lock_timeout_seconds},
            **kwargs,
        )
        _install_sqlite_hooks(engine)
        return engine

    if "poolclass" not in kwargs:
        kwargs.setdefault("pool_size", settings.db_pool_size)
        kwargs.setdefault("max_overflow", settings.db_max_overflow)

    return create_async_engine(
        url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args={
            "server_settings": {
                "application_name": settings.app_name,
            },
        },
        **kwargs,
    )


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    """Enable foreign keys and make every transaction take the write lock."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_conn: Any, connection_record: Any) -> None:
        # Stop the driver from emitting its own deferred BEGIN
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        # SQLite has no row locks; BEGIN IMMEDIATE serializes writers instead
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine: AsyncEngine = build_engine()

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def is_lock_timeout(exc: DBAPIError) -> bool:
    """Tell whether a driver error means a lock wait gave up."""
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        if getattr(orig, attr, None) == LOCK_NOT_AVAILABLE:
            return True
    return "database is locked" in str(orig)


async def _bound_lock_wait(session: AsyncSession) -> None:
    if session.bind is not None and session.bind.dialect.name == "postgresql":
        timeout_ms = int(settings.lock_timeout_seconds * 1000)
        await session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


@asynccontextmanager
async def transaction(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a unit of work in one all-or-nothing transaction.

    Commits when the block exits normally and rolls back on any exception,
    so no partial writes of a failed operation are ever visible.

    Args:
        session_factory: Session factory to use, defaults to ``AsyncSessionLocal``

    Yields:
        Session bound to the open transaction

    Raises:
        LockTimeoutError: If a row lock could not be acquired in time
    """
    factory = session_factory or AsyncSessionLocal
    async with factory() as session:
        try:
            async with session.begin():
                await _bound_lock_wait(session)
                yield session
        except DBAPIError as exc:
            if is_lock_timeout(exc):
                logger.warning("lock_wait_timeout", error=str(exc.orig))
                raise LockTimeoutError() from exc
            raise


async def create_tables(target: AsyncEngine | None = None) -> None:
    """Create all tables on the given engine."""
    async with (target or engine).begin() as conn:
        await conn.run_sync(metadata.create_all)


async def check_database_connection(target: AsyncEngine | None = None) -> bool:
    """Check if the database accepts connections."""
    try:
        async with (target or engine).connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except DBAPIError as exc:
        logger.warning("database_unreachable", error=str(exc.orig))
        return False
