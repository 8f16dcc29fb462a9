"""Tests for the Database connection manager."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from linksignal.storage.database import Database


def async_cm(value) -> MagicMock:
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=value)
    cm.__aexit__ = AsyncMock(return_value=False)
    return cm


@pytest.fixture
def conn() -> MagicMock:
    conn = MagicMock()
    conn.fetchval = AsyncMock(return_value=1)
    conn.execute = AsyncMock(return_value="UPDATE 1")
    conn.transaction = MagicMock(return_value=async_cm(None))
    return conn


@pytest.fixture
def pool(conn: MagicMock) -> MagicMock:
    pool = MagicMock()
    pool.acquire = MagicMock(return_value=async_cm(conn))
    pool.close = AsyncMock()
    return pool


class TestDatabase:
    """Tests for Database."""

    def test_pool_requires_connect(self) -> None:
        with pytest.raises(RuntimeError, match="not connected"):
            Database("postgresql://localhost/test").pool

    @pytest.mark.asyncio
    async def test_connect_and_query(self, pool: MagicMock, conn: MagicMock) -> None:
        with patch("asyncpg.create_pool", AsyncMock(return_value=pool)) as create_pool:
            async with Database("postgresql://localhost/test", min_size=1, max_size=2) as db:
                assert await db.health_check()
                assert await db.execute("UPDATE x SET y = 1") == "UPDATE 1"

        assert create_pool.call_args.kwargs["min_size"] == 1
        pool.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_transaction_wraps_connection(self, pool: MagicMock, conn: MagicMock) -> None:
        with patch("asyncpg.create_pool", AsyncMock(return_value=pool)):
            db = Database("postgresql://localhost/test")
            await db.connect()
            async with db.transaction() as tx_conn:
                assert tx_conn is conn
            await db.close()

        conn.transaction.assert_called_once()

    @pytest.mark.asyncio
    async def test_health_check_false_on_error(self, pool: MagicMock, conn: MagicMock) -> None:
        conn.fetchval.side_effect = OSError("gone")
        with patch("asyncpg.create_pool", AsyncMock(return_value=pool)):
            db = Database("postgresql://localhost/test")
            await db.connect()
            assert await db.health_check() is False

    @pytest.mark.asyncio
    async def test_command_timeout_passed_to_pool(self, pool: MagicMock) -> None:
        with patch("asyncpg.create_pool", AsyncMock(return_value=pool)) as create_pool:
            db = Database("postgresql://localhost/test", command_timeout=5.0)
            await db.connect()

        assert create_pool.call_args.kwargs["command_timeout"] == 5.0

    @pytest.mark.asyncio
    async def test_close_without_connect_is_noop(self) -> None:
        await Database("postgresql://localhost/test").close()
