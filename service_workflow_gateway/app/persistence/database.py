"""
PostgreSQL storage access for the Workflow Gateway.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

import asyncpg

from shared.errors import StorageError
from shared.logging import get_logger
from shared.retry import RetryConfig, retry_on_exception

TRANSIENT_OS_ERRORS = (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)


def is_transient_storage_error(exc: BaseException) -> bool:
    """Connection reset / connection lost failures worth retrying."""
    if isinstance(exc, TRANSIENT_OS_ERRORS):
        return True
    # SQLSTATE class 08 (connection exception), includes ConnectionDoesNotExistError
    return isinstance(exc, asyncpg.exceptions.PostgresConnectionError)


class Database:
    """Explicitly constructed handle around a bounded asyncpg pool.

    Every operation acquires a connection for its own scope and releases it
    afterwards. Transient connection failures are retried with linear
    backoff (``attempt * base_delay``); every other error surfaces on the
    first attempt.
    """

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: float = 60.0,
        retry_attempts: int = 3,
        retry_base_delay: float = 1.0,
        pool: Optional[asyncpg.Pool] = None,
    ) -> None:
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.pool = pool
        self.logger = get_logger("workflow_gateway.database")
        self.retry_config = RetryConfig(
            max_attempts=retry_attempts,
            base_delay=retry_base_delay,
            max_delay=retry_attempts * retry_base_delay,
            jitter=False,
            backoff_strategy="linear",
        )
        self._retrying = retry_on_exception(config=self.retry_config, retry_if=is_transient_storage_error)
        self._connect_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Create the connection pool.

        Concurrent callers share one creation attempt; only the first one
        to take the lock builds the pool.
        """
        if self.pool is not None:
            return
        async with self._connect_lock:
            if self.pool is not None:
                return
            try:
                self.pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    command_timeout=self.command_timeout,
                )
                self.logger.info("PostgreSQL pool started", min_size=self.min_size, max_size=self.max_size)
            except (OSError, asyncpg.PostgresError) as e:
                self.logger.error("Failed to start PostgreSQL pool", error=str(e))
                raise StorageError("Failed to connect to database", details={"error": str(e)}) from e

    async def close(self) -> None:
        """Close the connection pool."""
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL pool stopped")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection for the duration of the block.

        Connects lazily when startup could not reach the database.
        """
        if self.pool is None:
            await self.connect()
        async with self.pool.acquire() as conn:
            yield conn

    async def _run(self, operation: str, call: Callable[[asyncpg.Connection], Awaitable[Any]]) -> Any:
        async def attempt() -> Any:
            async with self.acquire() as conn:
                return await call(conn)

        attempt.__name__ = operation
        return await self._retrying(attempt)()

    async def execute(self, query: str, *args: Any) -> str:
        return await self._run("execute", lambda conn: conn.execute(query, *args))

    async def fetch(self, query: str, *args: Any) -> List[asyncpg.Record]:
        return await self._run("fetch", lambda conn: conn.fetch(query, *args))

    async def fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        return await self._run("fetchrow", lambda conn: conn.fetchrow(query, *args))

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self._run("fetchval", lambda conn: conn.fetchval(query, *args))

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            self.logger.warning("Database health check failed", error=str(e))
            return False
