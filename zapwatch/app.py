"""zapwatch: main entry point.

Wires the store, relay client, ingestion loop, and status server together.
Runs until SIGINT/SIGTERM or until the ingestion loop dies; the latter is
fatal and exits non-zero so the process supervisor restarts us.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from zapwatch.config import Config
from zapwatch.db import Database
from zapwatch.filters import lookback_timestamp
from zapwatch.ingest import ZapIngestor
from zapwatch.queries import ZapQueries
from zapwatch.relay import ReceiptStream, connect_client, subscribe_zaps
from zapwatch.server import StatusServer

log = logging.getLogger(__name__)


async def run(config: Config) -> int:
    """Start all services and run until shutdown. Returns the exit code."""
    # -- Database --
    db = Database(config.db_path)
    await db.connect()

    # -- Nostr client + subscription --
    client = await connect_client(config.nostr_relays)
    await subscribe_zaps(
        client, config.tracked_pubkeys, lookback_timestamp(config.lookback_days)
    )

    # -- Ingestion --
    stream = ReceiptStream()
    ingestor = ZapIngestor(db, config.tracked_pubkeys)
    pump_task = asyncio.create_task(stream.pump(client), name="nostr_notifications")
    ingest_task = asyncio.create_task(ingestor.run(stream), name="ingest")

    # -- Status server --
    server = StatusServer(
        ZapQueries(db),
        host=config.http_host,
        port=config.http_port,
        fresh_window_hours=config.fresh_window_hours,
        ingest_alive=lambda: not ingest_task.done(),
    )
    await server.start()

    # -- Shutdown signal handling --
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        log.info("Shutdown signal received")
        shutdown.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    ingest_task.add_done_callback(lambda _t: shutdown.set())

    log.info("zapwatch running, tracking %d pubkey(s)", len(config.tracked_pubkeys))
    log.info("Relays: %s", ", ".join(config.nostr_relays))

    # -- Wait for shutdown --
    await shutdown.wait()

    exit_code = 0
    if ingest_task.done() and not ingest_task.cancelled():
        exc = ingest_task.exception()
        log.error("Ingestion loop stopped: %s", exc)
        exit_code = 1
    log.info("Shutting down...")

    # -- Graceful shutdown --
    for t in (pump_task, ingest_task):
        t.cancel()
    for t in (pump_task, ingest_task):
        try:
            await t
        except asyncio.CancelledError:
            pass
        except Exception:
            log.debug("Task %s ended with an error during shutdown", t.get_name())

    await server.stop()
    await client.disconnect()
    await db.close()
    log.info(
        "Shutdown complete (%s)",
        ", ".join(f"{o.value}={n}" for o, n in ingestor.counts.items()),
    )
    return exit_code


def main() -> None:
    """Load config, configure logging, run zapwatch."""
    try:
        config = Config.load()
    except ValueError as e:
        print(f"zapwatch: {e}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        sys.exit(asyncio.run(run(config)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
