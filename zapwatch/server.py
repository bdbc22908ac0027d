"""HTTP status server for the zap ledger.

Read-only JSON endpoints for whatever renders the public page:
  GET /health                    ingestion task liveness
  GET /zaps/{npub}               latest zap + whether it is inside the window
  GET /zaps/{npub}/recent?limit  newest zaps first

Runs on port 8080 by default.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from aiohttp import web

from zapwatch.amount import msats_to_sats
from zapwatch.db import Zap
from zapwatch.queries import QueryError, ZapQueries, is_fresh, rolling_window_start

log = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 20
MAX_RECENT_LIMIT = 100


def _zap_json(zap: Zap) -> dict:
    data = zap.to_dict()
    data["amount_sats"] = msats_to_sats(zap.amount_msats)
    return data


class StatusServer:
    """Lightweight HTTP server exposing ledger queries."""

    def __init__(
        self,
        queries: ZapQueries,
        host: str = "0.0.0.0",
        port: int = 8080,
        fresh_window_hours: int = 24,
        ingest_alive: Callable[[], bool] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._queries = queries
        self._host = host
        self._port = port
        self._fresh_window_hours = fresh_window_hours
        self._ingest_alive = ingest_alive or (lambda: True)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/zaps/{npub}", self._handle_latest)
        app.router.add_get("/zaps/{npub}/recent", self._handle_recent)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        log.info("Status server listening on %s:%d", self._host, self._port)

    async def stop(self) -> None:
        """Stop the HTTP server and release resources."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    # -- Handlers ----------------------------------------------------------------

    async def _handle_health(self, request: web.Request) -> web.Response:
        """GET /health"""
        alive = self._ingest_alive()
        return web.json_response(
            {"ok": alive, "ingest": "running" if alive else "stopped"},
            status=200 if alive else 503,
        )

    async def _handle_latest(self, request: web.Request) -> web.Response:
        """GET /zaps/{npub}"""
        npub = request.match_info["npub"]
        try:
            zap = await self._queries.most_recent(npub)
        except ValueError:
            return web.json_response({"error": "Invalid npub"}, status=400)
        except QueryError:
            return web.json_response({"error": "Internal error"}, status=500)

        boundary = rolling_window_start(self._clock(), self._fresh_window_hours)
        return web.json_response({
            "npub": npub,
            "zapped_today": is_fresh(zap, boundary),
            "most_recent": _zap_json(zap) if zap else None,
        })

    async def _handle_recent(self, request: web.Request) -> web.Response:
        """GET /zaps/{npub}/recent?limit=N"""
        npub = request.match_info["npub"]
        try:
            limit = int(request.query.get("limit", DEFAULT_RECENT_LIMIT))
        except ValueError:
            return web.json_response({"error": "limit must be an integer"}, status=400)
        limit = max(0, min(limit, MAX_RECENT_LIMIT))

        try:
            zaps = await self._queries.most_recent_n(npub, limit)
        except ValueError:
            return web.json_response({"error": "Invalid npub"}, status=400)
        except QueryError:
            return web.json_response({"error": "Internal error"}, status=500)

        return web.json_response({
            "npub": npub,
            "zaps": [_zap_json(z) for z in zaps],
        })
