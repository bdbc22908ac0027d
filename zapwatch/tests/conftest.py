"""Shared pytest configuration for zapwatch tests."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest_asyncio

# Add project root to sys.path so `from zapwatch.xxx import ...` works.
_PROJECT_ROOT = str(Path(__file__).resolve().parent.parent.parent)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from zapwatch.db import Database  # noqa: E402

# -- Fake hex pubkeys (64 char hex strings) ------------------------------------

TRACKED_PK: str = "aa" * 32
OTHER_TRACKED_PK: str = "bb" * 32
STRANGER_PK: str = "cc" * 32
PROVIDER_PK: str = "dd" * 32


# -- Mock builders -------------------------------------------------------------


def make_tag(*values: str) -> MagicMock:
    tag = MagicMock()
    tag.as_vec.return_value = list(values)
    return tag


def make_tags_obj(tags: list[list[str]]) -> MagicMock:
    obj = MagicMock()
    obj.to_vec.return_value = [make_tag(*t) for t in tags]
    return obj


def make_event(
    kind_num: int,
    event_id: str = "ee" * 32,
    author_pk: str = PROVIDER_PK,
    tags: list[list[str]] | None = None,
    created_at: int = 1_700_000_000,
) -> MagicMock:
    """Build a mock nostr_sdk.Event."""
    event = MagicMock()

    id_mock = MagicMock()
    id_mock.to_hex.return_value = event_id
    event.id.return_value = id_mock

    kind_mock = MagicMock()
    kind_mock.as_u16.return_value = kind_num
    event.kind.return_value = kind_mock

    author_mock = MagicMock()
    author_mock.to_hex.return_value = author_pk
    event.author.return_value = author_mock

    ts = MagicMock()
    ts.as_secs.return_value = created_at
    event.created_at.return_value = ts

    event.tags.return_value = make_tags_obj(tags or [])
    return event


def make_zap_request(
    sender_pk: str = TRACKED_PK,
    amount_msats: str | None = "21000",
    bolt11_str: str | None = None,
    id_ok: bool = True,
    sig_ok: bool = True,
) -> MagicMock:
    """Build a mock kind 9734 zap request as returned by Event.from_json."""
    tags: list[list[str]] = [["p", PROVIDER_PK], ["relays", "wss://relay.damus.io"]]
    if amount_msats is not None:
        tags.append(["amount", amount_msats])
    if bolt11_str is not None:
        tags.append(["bolt11", bolt11_str])
    request = make_event(9734, event_id="9a" * 32, author_pk=sender_pk, tags=tags)
    request.verify_id.return_value = id_ok
    request.verify_signature.return_value = sig_ok
    return request


def make_receipt(
    receipt_id: str = "r1",
    description: str | None = '{"kind": 9734}',
    kind_num: int = 9735,
    created_at: int = 1_700_000_000,
) -> MagicMock:
    """Build a mock kind 9735 zap receipt."""
    tags: list[list[str]] = [["p", PROVIDER_PK], ["bolt11", "lnbc210n1fake"]]
    if description is not None:
        tags.append(["description", description])
    return make_event(kind_num, event_id=receipt_id, tags=tags, created_at=created_at)


# -- Shared fixtures -------------------------------------------------------------


@pytest_asyncio.fixture
async def db():
    """In-memory database, connected and ready."""
    database = Database(":memory:")
    await database.connect()
    yield database
    await database.close()


async def count_zaps(database: Database, npub: str) -> int:
    """Number of stored rows for an npub, read straight from the table."""
    cursor = await database._conn().execute(
        "SELECT COUNT(*) FROM zaps WHERE npub = ?", (npub,)
    )
    row = await cursor.fetchone()
    return row[0]
