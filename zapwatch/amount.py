"""Amount resolution for verified zap requests.

All amounts are millisatoshis: NIP-57 defines the 9734 'amount' tag in
msats and BOLT-11 invoices decode to msats. Conversion to sats happens only
for display.

Resolution never raises. Anything unparseable becomes 0 so the zap itself
is still recorded.
"""

from __future__ import annotations

import logging

import bolt11 as bolt11_lib
from nostr_sdk import Event as NostrEvent

from zapwatch.zap_verify import find_tag, tag_value

log = logging.getLogger(__name__)

# SQLite INTEGER is a signed 64-bit value.
MAX_STORED_MSATS = 2**63 - 1


def _parse_amount_tag(raw: str) -> int:
    # Unsigned ASCII decimal only.
    if not (raw.isascii() and raw.isdigit()):
        return 0
    return int(raw)


def _invoice_amount(bolt11_str: str, request_id: str) -> int:
    try:
        invoice = bolt11_lib.decode(bolt11_str)
    except Exception:
        log.warning("Zap request %s: could not decode bolt11 invoice", request_id[:16])
        return 0

    if invoice.signature is None:
        log.warning("Zap request %s: bolt11 invoice has no signature", request_id[:16])
        return 0

    return invoice.amount_msat or 0


def resolve_amount(request: NostrEvent) -> int:
    """Return the zapped amount in msats for a verified 9734 request."""
    request_id: str = request.id().to_hex()

    # A present amount tag wins even when its value is missing or malformed.
    amount_tag = find_tag(request, "amount")
    if amount_tag is not None:
        return _parse_amount_tag(amount_tag[1] if len(amount_tag) > 1 else "")

    log.debug("Zap request %s: no amount tag, looking for a bolt11 invoice", request_id[:16])
    bolt11_str = tag_value(request, "bolt11")
    if not bolt11_str:
        log.debug("Zap request %s: no bolt11 invoice either", request_id[:16])
        return 0

    return _invoice_amount(bolt11_str, request_id)


def clamp_amount(msats: int) -> int:
    """Saturate an amount into the range SQLite can store."""
    return max(0, min(msats, MAX_STORED_MSATS))


def msats_to_sats(msats: int) -> int:
    return msats // 1000
