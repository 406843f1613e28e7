"""
Pinpoint Backend — Database Session Management
===============================================

What:  Async SQLAlchemy engine, session factory, declarative base and the
       FastAPI session dependency.
How:   A `Database` object owns one engine and one session factory. It is
       built by the service registry from Settings, so tests can point each
       application at its own SQLite file.
Who:   Routes receive sessions via `Depends(get_db_session)`; services take
       the session as their first argument.

Connection Pooling Strategy:
    PostgreSQL: pooled (pool_size / max_overflow from settings), pre-ping,
                hourly recycle.
    SQLite:     NullPool; every session opens its own connection, so
                concurrent writers contend on SQLite's file lock and unique
                index violations surface as IntegrityError just as they do
                on PostgreSQL.
"""

import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from pinpoint.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object, which Alembic reads for autogenerate and
    `Database.create_all()` uses for development and tests.
    """
    pass


def _create_engine(settings: Settings) -> AsyncEngine:
    echo = settings.log_level == "DEBUG"
    if settings.is_sqlite:
        return create_async_engine(
            settings.database_url,
            echo=echo,
            poolclass=NullPool,
            # Writers wait up to 30s for SQLite's file lock instead of
            # failing with "database is locked".
            connect_args={"timeout": 30},
        )

    return create_async_engine(
        settings.database_url,
        echo=echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
    )


class Database:
    """
    Engine + session factory pair for one application instance.

    expire_on_commit=False: services commit and then serialize the same ORM
    objects for the response and the realtime event.
    """

    def __init__(self, settings: Settings):
        self.engine = _create_engine(settings)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """
        Create every table known to `Base.metadata`.

        Used by tests and local SQLite development; deployed databases are
        migrated with Alembic.
        """
        # Registers the model classes on Base.metadata
        import pinpoint.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def server_version(self) -> str:
        """Version string reported by the database server."""
        async with self.engine.connect() as conn:
            if self.engine.dialect.name == "sqlite":
                result = await conn.execute(text("SELECT sqlite_version()"))
            else:
                result = await conn.execute(text("SELECT version()"))
            return str(result.scalar())

    async def dispose(self) -> None:
        """Close all pooled connections (application shutdown)."""
        await self.engine.dispose()


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Opens a session from the application's Database
        2. Yields it to the route handler
        3. On success: commits anything the handler left pending
        4. On error: rolls back, then re-raises for the global handlers
        5. Always: closes the session (returns the connection)

    Store mutations commit their own transaction before notifying realtime
    clients, so the trailing commit is usually a no-op.
    """
    database: Database = request.app.state.registry.database
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
