"""
asyncpg pool wrapper shared by every repository.

Repositories take a Database and issue their own SQL; multi-statement
writes such as recording a sighting go through transaction().
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from linksignal.config.settings import get_settings

logger = logging.getLogger(__name__)


class Database:
    """
    Connection pool for the links, mentions, sources and blacklist tables.

    Usage:
        async with Database() as db:
            repo = LinkRepository(db)
            await repo.record_sighting(...)
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float | None = None,
    ):
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = command_timeout or settings.db_command_timeout_seconds

        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"Could not open Postgres pool: {e}")
            raise
        logger.info(f"Postgres pool open ({self._min_size}-{self._max_size} connections)")

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Postgres pool closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Yield a connection inside a transaction.

        The link upsert and the mention upsert of one sighting share it, so a
        failed mention write never leaves an orphan link behind.
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args: Any) -> str:
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True when the pool can run SELECT 1."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except (OSError, RuntimeError, asyncpg.PostgresError) as e:
            logger.warning(f"Postgres health check failed: {e}")
            return False
