"""Read side of the zap ledger.

Freshness is inclusive: a zap stamped exactly at the window boundary counts
as fresh. Which boundary to use is the caller's call:
  - rolling_window_start: now - window
  - calendar_window_start: start of the current UTC day - window
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from nostr_sdk import PublicKey

from zapwatch.db import Database, Zap

log = logging.getLogger(__name__)


class QueryError(RuntimeError):
    """A ledger read failed. Never to be read as 'not zapped'."""


def normalize_npub(value: str) -> str:
    """Accept npub1... or hex, return 64-char hex. Raises ValueError."""
    try:
        return PublicKey.parse(value.strip()).to_hex()
    except Exception as e:
        raise ValueError(f"Invalid pubkey: {value!r}") from e


def rolling_window_start(now: datetime, hours: int = 24) -> datetime:
    return now - timedelta(hours=hours)


def calendar_window_start(now: datetime, hours: int = 24) -> datetime:
    start_of_day = now.astimezone(timezone.utc).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return start_of_day - timedelta(hours=hours)


def is_fresh(zap: Zap | None, boundary: datetime) -> bool:
    return zap is not None and zap.zapped_at >= boundary


class ZapQueries:
    """Most-recent lookups against the ledger, keyed by tracked pubkey."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def most_recent(self, npub: str) -> Zap | None:
        npub_hex = normalize_npub(npub)
        try:
            return await self._db.get_most_recent_zap(npub_hex)
        except Exception as e:
            log.error("Error fetching most recent zap for %s: %s", npub_hex[:16], e)
            raise QueryError(f"most recent zap lookup failed for {npub_hex}") from e

    async def most_recent_n(self, npub: str, n: int) -> list[Zap]:
        npub_hex = normalize_npub(npub)
        if n <= 0:
            return []
        try:
            return await self._db.get_recent_zaps(npub_hex, n)
        except Exception as e:
            log.error("Error fetching recent zaps for %s: %s", npub_hex[:16], e)
            raise QueryError(f"recent zaps lookup failed for {npub_hex}") from e

    async def zapped_since(self, npub: str, boundary: datetime) -> bool:
        """True if the npub's latest zap is at or after `boundary`."""
        return is_fresh(await self.most_recent(npub), boundary)
