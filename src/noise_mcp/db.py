"""Database connection layer using asyncpg.

The pool is owned by a ``NoiseStore`` handle created by the server entry
points and passed into every tool call. Nothing in the query layer reaches
for a process-wide pool.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from noise_mcp.config import Settings, settings as default_settings
from noise_mcp.errors import QueryFailure

logger = logging.getLogger(__name__)

# Errors raised by the driver or the network that mean "the read failed"
STORE_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class NoiseStore:
    """Handle to the readings database with a bounded connection pool."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        query_timeout: float = 30.0,
        queue_limit: int = 0,
    ):
        self._pool = pool
        self.query_timeout = query_timeout
        self.queue_limit = queue_limit
        self._waiting = 0

    @classmethod
    async def connect(cls, config: Settings | None = None) -> "NoiseStore":
        """Create the connection pool described by ``config``."""
        config = config or default_settings
        min_size, max_size = config.db_pool_min_size, config.db_pool_max_size
        logger.info(f"Creating connection pool (min={min_size}, max={max_size})")
        pool = await asyncpg.create_pool(
            config.database_url,
            min_size=min_size,
            max_size=max_size,
            command_timeout=config.db_query_timeout,
        )
        logger.info("Connection pool created successfully")
        return cls(
            pool,
            query_timeout=config.db_query_timeout,
            queue_limit=config.db_pool_queue_limit,
        )

    @property
    def waiting(self) -> int:
        """Number of queries currently waiting for a pooled connection."""
        return self._waiting

    async def close(self) -> None:
        """Close the connection pool."""
        logger.info("Closing connection pool")
        await self._pool.close()

    @asynccontextmanager
    async def connection(self):
        """Acquire a connection for the duration of one query."""
        if self.queue_limit and self._waiting >= self.queue_limit:
            raise QueryFailure(
                f"Connection pool queue is full ({self._waiting} waiting)"
            )
        self._waiting += 1
        try:
            conn = await self._pool.acquire()
        finally:
            self._waiting -= 1
        try:
            yield conn
        finally:
            await self._pool.release(conn)

    async def fetch_all(
        self, query: str, *args: Any, timeout: float | None = None
    ) -> list[dict]:
        """Execute a query and return all rows as dictionaries."""
        timeout = timeout or self.query_timeout
        try:
            async with self.connection() as conn:
                rows = await asyncio.wait_for(
                    conn.fetch(query, *args),
                    timeout=timeout,
                )
        except STORE_ERRORS as e:
            logger.error(f"Query failed: {e!r}")
            raise QueryFailure(f"Database query failed: {e}") from e
        return [dict(row) for row in rows]

    async def fetch_val(
        self, query: str, *args: Any, timeout: float | None = None
    ) -> Any:
        """Execute a query and return a single value."""
        timeout = timeout or self.query_timeout
        try:
            async with self.connection() as conn:
                return await asyncio.wait_for(
                    conn.fetchval(query, *args),
                    timeout=timeout,
                )
        except STORE_ERRORS as e:
            logger.error(f"Query failed: {e!r}")
            raise QueryFailure(f"Database query failed: {e}") from e

    async def check_connection(self) -> bool:
        """Test database connectivity."""
        try:
            result = await self.fetch_val("SELECT 1")
            return result == 1
        except QueryFailure as e:
            logger.error(f"Database connection check failed: {e}")
            return False
