"""Tests for the StatusServer HTTP endpoints.

Uses aiohttp's TestServer/TestClient to avoid binding real ports.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient as AioTestClient, TestServer
from nostr_sdk import Keys

from zapwatch.db import Database, Zap
from zapwatch.queries import ZapQueries
from zapwatch.server import StatusServer

NPUB_HEX = Keys.generate().public_key().to_hex()
NOW = datetime(2026, 10, 18, 15, 30, tzinfo=timezone.utc)


def _zap(receipt_id: str, zapped_at: datetime, amount_msats: int = 21000) -> Zap:
    return Zap(
        id=f"id-{receipt_id}",
        npub=NPUB_HEX,
        receipt_id=receipt_id,
        amount_msats=amount_msats,
        zapped_at=zapped_at,
    )


async def _client_for(server: StatusServer) -> AioTestClient:
    client = AioTestClient(TestServer(server.build_app()))
    await client.start_server()
    return client


@pytest_asyncio.fixture
async def aio_client(db: Database):
    """Test client over a real in-memory ledger with a fixed clock."""
    server = StatusServer(ZapQueries(db), clock=lambda: NOW)
    client = await _client_for(server)
    yield client
    await client.close()


# -- Health --------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_health_ok(aio_client: AioTestClient) -> None:
    resp = await aio_client.get("/health")
    assert resp.status == 200
    assert await resp.json() == {"ok": True, "ingest": "running"}


@pytest.mark.asyncio
async def test_health_reports_dead_ingest(db: Database) -> None:
    client = await _client_for(StatusServer(ZapQueries(db), ingest_alive=lambda: False))
    try:
        resp = await client.get("/health")
        assert resp.status == 503
        assert (await resp.json())["ingest"] == "stopped"
    finally:
        await client.close()


# -- Latest ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_latest_no_zaps(aio_client: AioTestClient) -> None:
    resp = await aio_client.get(f"/zaps/{NPUB_HEX}")
    assert resp.status == 200
    body = await resp.json()
    assert body["zapped_today"] is False
    assert body["most_recent"] is None


@pytest.mark.asyncio
async def test_latest_fresh_zap(db: Database, aio_client: AioTestClient) -> None:
    await db.add_zap(_zap("r1", NOW - timedelta(hours=3)))
    resp = await aio_client.get(f"/zaps/{NPUB_HEX}")
    body = await resp.json()
    assert body["zapped_today"] is True
    assert body["most_recent"]["receipt_id"] == "r1"
    assert body["most_recent"]["amount_sats"] == 21


@pytest.mark.asyncio
async def test_latest_stale_zap(db: Database, aio_client: AioTestClient) -> None:
    await db.add_zap(_zap("r1", NOW - timedelta(hours=25)))
    body = await (await aio_client.get(f"/zaps/{NPUB_HEX}")).json()
    assert body["zapped_today"] is False
    assert body["most_recent"]["receipt_id"] == "r1"


@pytest.mark.asyncio
async def test_latest_invalid_npub(aio_client: AioTestClient) -> None:
    resp = await aio_client.get("/zaps/not-a-key")
    assert resp.status == 400


@pytest.mark.asyncio
async def test_latest_query_failure_is_500() -> None:
    db = AsyncMock(spec=Database)
    db.get_most_recent_zap.side_effect = RuntimeError("database is locked")
    client = await _client_for(StatusServer(ZapQueries(db)))
    try:
        resp = await client.get(f"/zaps/{NPUB_HEX}")
        assert resp.status == 500
        assert "error" in await resp.json()
    finally:
        await client.close()


# -- Recent ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_recent_limit(db: Database, aio_client: AioTestClient) -> None:
    for i in range(5):
        await db.add_zap(_zap(f"r{i}", NOW - timedelta(hours=5 - i)))
    resp = await aio_client.get(f"/zaps/{NPUB_HEX}/recent", params={"limit": "3"})
    assert resp.status == 200
    body = await resp.json()
    assert [z["receipt_id"] for z in body["zaps"]] == ["r4", "r3", "r2"]


@pytest.mark.asyncio
async def test_recent_bad_limit(aio_client: AioTestClient) -> None:
    resp = await aio_client.get(f"/zaps/{NPUB_HEX}/recent", params={"limit": "lots"})
    assert resp.status == 400


@pytest.mark.asyncio
async def test_recent_negative_limit_is_empty(db: Database, aio_client: AioTestClient) -> None:
    await db.add_zap(_zap("r1", NOW))
    body = await (await aio_client.get(f"/zaps/{NPUB_HEX}/recent", params={"limit": "-4"})).json()
    assert body["zaps"] == []
