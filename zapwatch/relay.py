"""Relay adapter: nostr client setup, zap subscription, and receipt stream.

ReceiptStream bridges nostr_sdk's callback-style HandleNotification into an
async iterator so the ingestion loop can drain receipts one at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from nostr_sdk import (
    Client,
    Event,
    HandleNotification,
    RelayMessage,
    RelayUrl,
    Timestamp,
)

from zapwatch.filters import zap_filters_since

log = logging.getLogger(__name__)

_CLOSED = object()


async def connect_client(relays: Iterable[str]) -> Client:
    """Create a signer-less client on read-only relays and connect."""
    client = Client()
    count = 0
    for relay in relays:
        await client.add_read_relay(RelayUrl.parse(relay))
        count += 1
    await client.connect()
    log.info("Connected to %d relay(s)", count)
    return client


async def subscribe_zaps(
    client: Client, tracked: Iterable[str], since: Timestamp
) -> None:
    """Subscribe to zap receipts for the tracked pubkeys."""
    tracked = list(tracked)
    for f in zap_filters_since(since, tracked):
        await client.subscribe(f)
    log.info(
        "Subscribed to kind 9735 since %d for %d tracked pubkey(s)",
        since.as_secs(), len(tracked),
    )


class ReceiptStream(HandleNotification):
    """Async iterator over events delivered by the relay pool.

    Relay messages (EOSE, notices, OK, auth) are ignored. Once close() has
    been called and the queue drained, iteration ends; if close() was given
    an exception, iteration raises it instead.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._error: BaseException | None = None

    # -- HandleNotification interface ------------------------------------------

    async def handle(self, relay_url: RelayUrl, subscription_id: str, event: Event):
        """Queue a delivered event."""
        if self._closed:
            return
        self._queue.put_nowait(event)

    async def handle_msg(self, relay_url: RelayUrl, msg: RelayMessage):
        """Required by HandleNotification. Non-event messages are dropped."""
        pass

    # -- Lifecycle ----------------------------------------------------------------

    def close(self, error: BaseException | None = None) -> None:
        """Signal end of stream. Events already queued are still delivered."""
        if self._closed:
            return
        self._closed = True
        self._error = error
        self._queue.put_nowait(_CLOSED)

    async def pump(self, client: Client) -> None:
        """Feed this stream from client notifications until they stop."""
        try:
            await client.handle_notifications(self)
        except Exception as exc:
            log.error("Relay notification stream failed: %s", exc)
            self.close(exc)
            raise
        log.warning("Relay notification stream ended")
        self.close()

    # -- Async iterator -------------------------------------------------------------

    def __aiter__(self) -> ReceiptStream:
        return self

    async def __anext__(self) -> Event:
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the sentinel so repeated iteration also ends.
            self._queue.put_nowait(_CLOSED)
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration
        return item
