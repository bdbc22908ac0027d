"""Zap receipt ingestion loop.

Per receipt: validate the embedded zap request, match its author against
the tracked pubkeys, resolve the amount, check the (npub, receipt_id) dedup
key, and persist. Receipts are processed strictly one at a time, so the
dedup check is a plain read-then-write.

Failure policy:
  - invalid or untracked receipts are skipped quietly
  - a failed dedup read drops the receipt (never risk a double count)
  - a failed write is logged and the loop keeps going
  - the upstream stream ending is fatal (UpstreamClosed)
"""

from __future__ import annotations

import enum
import logging
import uuid
from collections import OrderedDict
from collections.abc import AsyncIterable, Collection
from datetime import datetime, timezone

from nostr_sdk import Event as NostrEvent

from zapwatch.amount import clamp_amount, resolve_amount
from zapwatch.db import Database, Zap
from zapwatch.zap_verify import check_zap_request, zap_sender

log = logging.getLogger(__name__)


class UpstreamClosed(RuntimeError):
    """The relay notification stream ended; ingestion cannot continue."""


class IngestOutcome(str, enum.Enum):
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    STORED = "stored"
    READ_FAILED = "read_failed"
    WRITE_FAILED = "write_failed"


def receipt_time(event: NostrEvent) -> datetime:
    """The receipt's created_at as UTC, or now if it is out of range."""
    try:
        return datetime.fromtimestamp(event.created_at().as_secs(), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return datetime.now(timezone.utc)


class ZapIngestor:
    """Validates and persists zap receipts for a fixed set of pubkeys."""

    def __init__(
        self,
        db: Database,
        tracked_pubkeys: Collection[str],
        seen_cache_size: int = 10_000,
    ) -> None:
        self._db = db
        self._tracked = frozenset(tracked_pubkeys)
        # Dedup keys already known to be in the store. Lets relay
        # re-deliveries skip the database read. Bounded LRU.
        self._seen: OrderedDict[tuple[str, str], None] = OrderedDict()
        self._seen_cache_size = seen_cache_size
        self.counts: dict[IngestOutcome, int] = {o: 0 for o in IngestOutcome}

    def _remember(self, key: tuple[str, str]) -> None:
        self._seen[key] = None
        self._seen.move_to_end(key)
        while len(self._seen) > self._seen_cache_size:
            self._seen.popitem(last=False)

    async def ingest(self, event: NostrEvent) -> IngestOutcome:
        """Process one receipt and report what happened to it."""
        outcome = await self._ingest(event)
        self.counts[outcome] += 1
        return outcome

    async def _ingest(self, event: NostrEvent) -> IngestOutcome:
        receipt_id: str = event.id().to_hex()

        # -- validating --
        check = check_zap_request(event)
        if not check.ok:
            return IngestOutcome.SKIPPED
        npub = zap_sender(check.request, self._tracked)
        if npub is None:
            return IngestOutcome.SKIPPED
        log.debug("Zap receipt %s is from tracked pubkey %s", receipt_id[:16], npub[:16])

        # -- resolving --
        amount_msats = clamp_amount(resolve_amount(check.request))

        # -- dedup-checking --
        key = (npub, receipt_id)
        if key in self._seen:
            return IngestOutcome.DUPLICATE
        try:
            tracked = await self._db.zap_already_tracked(npub, receipt_id)
        except Exception as e:
            log.error(
                "Error checking if zap %s is already tracked: %s. skipping.",
                receipt_id[:16], e,
            )
            return IngestOutcome.READ_FAILED
        if tracked:
            self._remember(key)
            return IngestOutcome.DUPLICATE

        # -- persisting --
        zap = Zap(
            id=uuid.uuid4().hex,
            npub=npub,
            receipt_id=receipt_id,
            amount_msats=amount_msats,
            zapped_at=receipt_time(event),
        )
        try:
            inserted = await self._db.add_zap(zap)
        except Exception as e:
            log.error("Error saving zap %s: %s", receipt_id[:16], e)
            return IngestOutcome.WRITE_FAILED

        self._remember(key)
        if not inserted:
            return IngestOutcome.DUPLICATE
        log.info(
            "Zap %s saved: %s zapped %d msats",
            receipt_id[:16], npub[:16], amount_msats,
        )
        return IngestOutcome.STORED

    async def run(self, receipts: AsyncIterable[NostrEvent]) -> None:
        """Drain `receipts` one by one. Never returns normally.

        Errors from the stream itself propagate. A clean end of the stream
        raises UpstreamClosed.
        """
        log.info("Ingestion loop started for %d tracked pubkey(s)", len(self._tracked))
        async for event in receipts:
            try:
                await self.ingest(event)
            except Exception:
                log.exception("Error ingesting event %s", event.id().to_hex()[:16])
        raise UpstreamClosed("relay notification stream closed")
