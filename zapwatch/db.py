"""
Local SQLite store for tracked zaps.

Append-only ledger: one row per (npub, receipt_id). The ingestion loop is
the only writer; the query service and status server read.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import aiosqlite

_SCHEMA = """
CREATE TABLE IF NOT EXISTS zaps (
    id              TEXT PRIMARY KEY,
    npub            TEXT NOT NULL,
    receipt_id      TEXT NOT NULL,
    zapped_at       INTEGER NOT NULL,
    amount_msats    INTEGER NOT NULL DEFAULT 0,
    UNIQUE (npub, receipt_id)
);

CREATE INDEX IF NOT EXISTS idx_zaps_npub_zapped ON zaps(npub, zapped_at);
"""


@dataclass(frozen=True)
class Zap:
    """A persisted zap. `npub` is the tracked identity's hex pubkey."""

    id: str
    npub: str
    receipt_id: str
    amount_msats: int
    zapped_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "npub": self.npub,
            "receipt_id": self.receipt_id,
            "amount_msats": self.amount_msats,
            "zapped_at": self.zapped_at.isoformat(),
        }


def _row_to_zap(row: aiosqlite.Row) -> Zap:
    return Zap(
        id=row["id"],
        npub=row["npub"],
        receipt_id=row["receipt_id"],
        amount_msats=row["amount_msats"],
        zapped_at=datetime.fromtimestamp(row["zapped_at"], tz=timezone.utc),
    )


class Database:
    """Async SQLite wrapper for the zap ledger."""

    def __init__(self, db_path: str = "zapwatch.db") -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open connection, enable WAL mode, create tables."""
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        """Close the connection."""
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not connected, call connect() first")
        return self._db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def zap_already_tracked(self, npub: str, receipt_id: str) -> bool:
        """True if a zap for this (npub, receipt_id) is already stored."""
        cursor = await self._conn().execute(
            "SELECT 1 FROM zaps WHERE npub = ? AND receipt_id = ? LIMIT 1",
            (npub, receipt_id),
        )
        return await cursor.fetchone() is not None

    async def get_most_recent_zap(self, npub: str) -> Zap | None:
        """Latest zap for an npub, or None if it has none."""
        zaps = await self.get_recent_zaps(npub, 1)
        return zaps[0] if zaps else None

    async def get_recent_zaps(self, npub: str, limit: int) -> list[Zap]:
        """Latest `limit` zaps for an npub, newest first."""
        if limit <= 0:
            return []
        cursor = await self._conn().execute(
            """SELECT * FROM zaps
               WHERE npub = ?
               ORDER BY zapped_at DESC, rowid DESC
               LIMIT ?""",
            (npub, limit),
        )
        return [_row_to_zap(r) for r in await cursor.fetchall()]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_zap(self, zap: Zap) -> bool:
        """Insert a zap. Returns False if the dedup key already existed."""
        db = self._conn()
        cursor = await db.execute(
            """INSERT OR IGNORE INTO zaps
               (id, npub, receipt_id, zapped_at, amount_msats)
               VALUES (?, ?, ?, ?, ?)""",
            (
                zap.id,
                zap.npub,
                zap.receipt_id,
                int(zap.zapped_at.timestamp()),
                zap.amount_msats,
            ),
        )
        await db.commit()
        return cursor.rowcount == 1
