"""
PostgreSQL access for the audit log.

A single asyncpg pool is opened at startup. Audit records are written through
``transactional`` so that a record is either committed or not stored at all.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable, List, Optional, TypeVar

import asyncpg
from asyncpg import Pool, Connection

from admin_console.config import settings
from admin_console.errors import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Faults of the database itself, as opposed to programming errors.
# asyncio.TimeoutError is separate from OSError before Python 3.11.
DATABASE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


def _asyncpg_dsn(url: str) -> str:
    """asyncpg does not accept the SQLAlchemy driver suffix."""
    return url.replace("postgresql+asyncpg://", "postgresql://", 1)


class Database:
    """Owns the asyncpg pool used for the audit log."""

    def __init__(self):
        self._pool: Optional[Pool] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        async with self._lock:
            if self._pool is not None:
                return
            logger.info(f"Opening audit database pool ({settings.db_pool_min_size}-{settings.db_pool_max_size} connections)")
            self._pool = await asyncpg.create_pool(
                dsn=_asyncpg_dsn(settings.database_url),
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout,
                server_settings={"application_name": settings.app_name},
            )

    async def disconnect(self) -> None:
        async with self._lock:
            pool, self._pool = self._pool, None
            if pool is not None:
                await pool.close()
                logger.info("Audit database pool closed")

    @property
    def pool(self) -> Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    async def execute(self, query: str, *args) -> str:
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args) -> List[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Connection, None]:
        """Connection inside a transaction that commits when the block exits cleanly."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> bool:
        """True when a trivial query round-trips through the pool."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval("SELECT 1") == 1
        except DATABASE_ERRORS as e:
            logger.error(f"Database health check failed: {e}")
            return False


async def transactional(db: Database, fn: Callable[[Any], Awaitable[T]]) -> T:
    """
    Run ``fn`` inside a single database transaction.

    The transaction commits when ``fn`` returns and rolls back when it raises.
    Database faults, including failures to begin or commit, are raised as
    StorageError with the original error as cause.
    """
    try:
        async with db.transaction() as conn:
            return await fn(conn)
    except DATABASE_ERRORS as e:
        raise StorageError(f"failed to complete database transaction: {e}") from e


# Global database instance
database = Database()


async def get_db() -> Database:
    """Dependency injection for database access."""
    return database
