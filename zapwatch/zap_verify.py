"""Pure NIP-57 zap receipt validation (no I/O, no side effects).

A kind 9735 receipt is re-broadcast by the zapper's LNURL provider, so its
own signature only says who vouches for the payment. Attribution comes from
the kind 9734 zap request embedded in the receipt's 'description' tag:
  1. the receipt must be kind 9735
  2. it must carry a 'description' tag
  3. the description must parse as a nostr event
  4. the embedded event id must match the hash of its canonical fields
  5. the embedded signature must verify against its declared author

A receipt failing any check is skipped, never raised.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Collection
from dataclasses import dataclass

from nostr_sdk import Event as NostrEvent

log = logging.getLogger(__name__)

ZAP_RECEIPT_KIND = 9735


class SkipReason(str, enum.Enum):
    NOT_A_RECEIPT = "not_a_receipt"
    NO_DESCRIPTION = "no_description"
    BAD_JSON = "bad_json"
    BAD_ID = "bad_id"
    BAD_SIGNATURE = "bad_signature"


@dataclass(frozen=True)
class ZapRequestCheck:
    """Outcome of extracting the zap request from a receipt.

    Exactly one of `request` / `skip_reason` is set.
    """

    request: NostrEvent | None = None
    skip_reason: SkipReason | None = None

    @property
    def ok(self) -> bool:
        return self.request is not None


def find_tag(event: NostrEvent, name: str) -> list[str] | None:
    """Return the first `name` tag on `event` as a list, even if it has no value."""
    for tag in event.tags().to_vec():
        tag_vec = tag.as_vec()
        if tag_vec and tag_vec[0] == name:
            return tag_vec
    return None


def tag_value(event: NostrEvent, name: str) -> str | None:
    """Return the first value of the first valued `name` tag on `event`, if any."""
    for tag in event.tags().to_vec():
        tag_vec = tag.as_vec()
        if len(tag_vec) >= 2 and tag_vec[0] == name:
            return tag_vec[1]
    return None


def _skip(event_id: str, reason: SkipReason) -> ZapRequestCheck:
    log.debug("Zap receipt %s skipped: %s", event_id[:16], reason.value)
    return ZapRequestCheck(skip_reason=reason)


def check_zap_request(event: NostrEvent) -> ZapRequestCheck:
    """Extract and verify the zap request embedded in a kind 9735 receipt."""
    event_id: str = event.id().to_hex()

    if event.kind().as_u16() != ZAP_RECEIPT_KIND:
        return _skip(event_id, SkipReason.NOT_A_RECEIPT)

    description_json = tag_value(event, "description")
    if not description_json:
        return _skip(event_id, SkipReason.NO_DESCRIPTION)

    try:
        request = NostrEvent.from_json(description_json)
    except Exception:
        return _skip(event_id, SkipReason.BAD_JSON)

    if not request.verify_id():
        return _skip(event_id, SkipReason.BAD_ID)
    if not request.verify_signature():
        return _skip(event_id, SkipReason.BAD_SIGNATURE)

    return ZapRequestCheck(request=request)


def get_zap_request(event: NostrEvent) -> NostrEvent | None:
    """Return the verified zap request of a receipt, or None."""
    return check_zap_request(event).request


def zap_sender(request: NostrEvent, tracked: Collection[str]) -> str | None:
    """Return the request author's hex pubkey if it is tracked, else None."""
    author: str = request.author().to_hex()
    if author in tracked:
        return author
    return None
