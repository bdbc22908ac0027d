"""Subscription filters for kind 9735 zap receipts.

Two filters go out together:
  - kind-only since a timestamp (coarse net)
  - kind + uppercase 'P' tag on the tracked pubkeys (precise net)

NIP-57 receipts carry the zapper in the 'P' tag. Not every relay indexes
uppercase tags consistently, so the kind-only filter stays as a fallback and
the validator sorts out attribution.
"""

from __future__ import annotations

from collections.abc import Iterable

from nostr_sdk import (
    Alphabet,
    Filter,
    Kind,
    KindStandard,
    SingleLetterTag,
    Timestamp,
)

_SECONDS_PER_DAY = 60 * 60 * 24


def zap_receipt_kind() -> Kind:
    return Kind.from_std(KindStandard.ZAP_RECEIPT)


def lookback_timestamp(days: int, now: Timestamp | None = None) -> Timestamp:
    """Return the timestamp `days` days before `now` (clamped at epoch)."""
    now_secs = (now or Timestamp.now()).as_secs()
    return Timestamp.from_secs(max(0, now_secs - days * _SECONDS_PER_DAY))


def zap_filters_since(since: Timestamp, tracked: Iterable[str]) -> list[Filter]:
    """Build the receipt filters for `tracked` hex pubkeys since `since`."""
    zap_filter = Filter().kind(zap_receipt_kind()).since(since)
    zap_p_filter = (
        Filter()
        .kind(zap_receipt_kind())
        .custom_tags(SingleLetterTag.uppercase(Alphabet.P), sorted(tracked))
        .since(since)
    )
    return [zap_filter, zap_p_filter]
