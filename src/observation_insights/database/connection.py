"""
Async connection pooling for the observation data store.

The analytics engine only reads, so the pool exposes fetch helpers and a
health check. Connection settings come from DatabaseConfig (DATABASE_URL).
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import asyncpg

from ..config import DatabaseConfig, get_settings


logger = logging.getLogger(__name__)


class DatabaseConnectionError(Exception):
    """Raised when the data store cannot be reached."""
    pass


class DatabasePool:
    """
    asyncpg pool wrapper with explicit lifecycle.

    Call initialize() before use and close() on shutdown. Reads from
    concurrent dashboard dimensions share the pool.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._is_closed = False

    async def initialize(self) -> None:
        if self._pool is not None and not self._is_closed:
            return
        if not self.config.url:
            raise DatabaseConnectionError("DATABASE_URL is not configured")

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.url,
                min_size=self.config.pool_min_size,
                max_size=self.config.pool_max_size,
                command_timeout=60,
                server_settings={
                    "jit": "off",
                    "default_transaction_read_only": "on",
                },
            )
            self._is_closed = False
            logger.info(f"Database pool initialized with {self.config.pool_min_size}-{self.config.pool_max_size} connections")
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e

    async def close(self) -> None:
        if self._pool and not self._is_closed:
            await self._pool.close()
            self._is_closed = True
            logger.info("Database pool closed")

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None and not self._is_closed

    @asynccontextmanager
    async def acquire_connection(self):
        """
        Acquire a connection from the pool.

        Usage:
            async with pool.acquire_connection() as conn:
                rows = await conn.fetch("SELECT ...")
        """
        if self._pool is None:
            raise DatabaseConnectionError("Database pool not initialized")
        if self._is_closed:
            raise DatabaseConnectionError("Database pool is closed")

        async with self._pool.acquire() as connection:
            yield connection

    async def fetch(self, query: str, *args) -> List[asyncpg.Record]:
        async with self.acquire_connection() as conn:
            try:
                return await conn.fetch(query, *args)
            except asyncpg.PostgresError as e:
                logger.error(f"Query execution failed: {e}", extra={"query": query, "arg_count": len(args)})
                raise

    async def fetch_one(self, query: str, *args) -> Optional[asyncpg.Record]:
        async with self.acquire_connection() as conn:
            return await conn.fetchrow(query, *args)

    async def health_check(self) -> bool:
        try:
            result = await self.fetch_one("SELECT 1 AS health_check")
            return result is not None and result["health_check"] == 1
        except (DatabaseConnectionError, OSError, asyncpg.PostgresError) as e:
            logger.error(f"Health check failed: {e}")
            return False


_global_pool: Optional[DatabasePool] = None


async def get_database_pool(config: Optional[DatabaseConfig] = None) -> DatabasePool:
    """Shared pool for the process, created from settings on first use."""
    global _global_pool

    if _global_pool is None:
        _global_pool = DatabasePool(config or get_settings().database)
    if not _global_pool.is_initialized:
        await _global_pool.initialize()
    return _global_pool


async def close_database_pool() -> None:
    """Close the shared pool. Call during application shutdown."""
    global _global_pool

    if _global_pool:
        await _global_pool.close()
        _global_pool = None
