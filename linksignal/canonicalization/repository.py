"""Database repository for the blacklist table."""

import logging

from linksignal.canonicalization.blacklist import (
    BlacklistEntry,
    BlacklistGuard,
    BlacklistType,
)
from linksignal.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS blacklist (
    id          BIGSERIAL PRIMARY KEY,
    type        TEXT NOT NULL CHECK (type IN ('domain', 'url')),
    pattern     TEXT NOT NULL,
    reason      TEXT,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (type, pattern)
);
"""

_INSERT_SQL = """
INSERT INTO blacklist (type, pattern, reason)
VALUES ($1, $2, $3)
ON CONFLICT (type, pattern) DO UPDATE SET reason = COALESCE(EXCLUDED.reason, blacklist.reason)
RETURNING *
"""


def _record_to_entry(record) -> BlacklistEntry:
    """Convert an asyncpg Record to a BlacklistEntry."""
    return BlacklistEntry(
        type=BlacklistType(record["type"]),
        pattern=record["pattern"],
        id=record["id"],
        reason=record["reason"],
        created_at=record["created_at"],
    )


class BlacklistRepository:
    """Read access plus admin-side writes for blacklist rows.

    The core only ever calls ``snapshot()``; ``add``/``remove`` exist for
    seeding and admin tooling.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the blacklist table (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Blacklist table ensured")

    async def add(
        self,
        type: BlacklistType,
        pattern: str,
        reason: str | None = None,
    ) -> BlacklistEntry:
        """Insert a deny rule (no-op if it already exists)."""
        pattern = pattern.strip()
        if type == BlacklistType.DOMAIN:
            pattern = pattern.lower()
        row = await self._db.fetchrow(_INSERT_SQL, type.value, pattern, reason)
        return _record_to_entry(row)

    async def remove(self, entry_id: int) -> bool:
        """Delete a deny rule. Returns True if a row was removed."""
        result = await self._db.execute("DELETE FROM blacklist WHERE id = $1", entry_id)
        return result.endswith("1")

    async def list_entries(self) -> list[BlacklistEntry]:
        """Fetch all deny rules ordered by type and pattern."""
        rows = await self._db.fetch("SELECT * FROM blacklist ORDER BY type, pattern")
        return [_record_to_entry(r) for r in rows]

    async def snapshot(self) -> BlacklistGuard:
        """Build a read-only guard from the current rows."""
        entries = await self.list_entries()
        logger.debug("Loaded blacklist snapshot with %d entries", len(entries))
        return BlacklistGuard(entries)
