"""
Database Connection Management

Async SQLAlchemy 2.0 store handle. One ``Database`` is created at program
start, passed explicitly to the components that need it, and closed on
shutdown.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from order_engine.config.settings import DatabaseSettings
from order_engine.database.models import Base

logger = structlog.get_logger(__name__)


class Database:
    """
    Store handle owning the engine and session factory.

    Example:
        database = Database(settings.database)
        await database.connect()
        async with database.transaction() as session:
            ...
        await database.close()
    """

    def __init__(self, config: DatabaseSettings, engine: Optional[AsyncEngine] = None):
        self.config = config
        self._engine: Optional[AsyncEngine] = engine
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        if engine is not None:
            self._session_factory = self._make_session_factory(engine)

    @staticmethod
    def _make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def connect(self) -> AsyncEngine:
        """
        Create the engine and verify connectivity.

        Returns:
            AsyncEngine: The initialized database engine
        """
        if self._engine is not None:
            logger.warning("Database already initialized")
            return self._engine

        engine_config = {
            "echo": self.config.echo,
            "pool_pre_ping": True,
        }
        if self.config.async_url.startswith("postgresql"):
            engine_config.update({
                "pool_size": self.config.pool_size,
                "max_overflow": self.config.max_overflow,
                "pool_timeout": self.config.pool_timeout,
            })

        self._engine = create_async_engine(self.config.async_url, **engine_config)
        self._session_factory = self._make_session_factory(self._engine)

        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info(
                "Database connection established",
                host=self.config.host,
                database=self.config.db,
            )
        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            raise

        return self._engine

    async def create_all(self) -> None:
        """Create any missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured")

    async def close(self) -> None:
        """Dispose of the engine and all pooled connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection pool closed")

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call connect() first.")
        return self._engine

    def _new_session(self) -> AsyncSession:
        if self._session_factory is None:
            logger.error("Database not initialized when a session was requested")
            raise RuntimeError("Database not initialized. Call connect() first.")
        return self._session_factory()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Unit of work spanning every write made through the yielded session.

        Commits when the block exits normally. On any exception the whole
        transaction is rolled back, which also undoes stock reservations and
        discount redemptions made inside it, and the exception propagates.

        Yields:
            AsyncSession: Session bound to one open transaction
        """
        session = self._new_session()
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.warning(
                "Transaction failed, rolling back",
                error=str(e),
                error_type=type(e).__name__,
            )
            try:
                await session.rollback()
            except Exception as rollback_error:
                # Reserved stock may stay decremented until the connection drops
                logger.error(
                    "Transaction rollback failed",
                    error=str(rollback_error),
                    original_error=type(e).__name__,
                )
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Read-only session; nothing is committed."""
        session = self._new_session()
        try:
            yield session
        finally:
            await session.close()

    async def health(self) -> dict:
        """
        Check database health status.

        Returns:
            dict: Health status with latency information
        """
        try:
            start = time.perf_counter()
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000

            return {
                "status": "healthy",
                "latency_ms": round(latency_ms, 2),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
            }
