"""
zapwatch configuration.

Frozen dataclass loaded from environment variables.
Loads ~/.zapwatch/zapwatch.env first when it exists; real environment
variables always win over the file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from nostr_sdk import PublicKey


def _normalize_pubkey(value: str) -> str:
    """Accept npub1... or hex, return 64-char hex."""
    return PublicKey.parse(value).to_hex()


_REQUIRED_FIELDS = ("TRACKED_NPUBS",)

_DEFAULT_RELAYS = ",".join([
    "wss://relay.damus.io",
    "wss://nostr.plebchain.org/",
    "wss://bitcoiner.social/",
    "wss://relay.snort.social",
    "wss://relayable.org",
    "wss://nos.lol",
    "wss://nostr.mom",
    "wss://e.nos.lol",
    "wss://nostr.bitcoiner.social",
])


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Config:
    """Immutable zapwatch configuration."""

    # Identities whose zaps are tracked (hex pubkeys)
    tracked_pubkeys: frozenset[str]

    # Nostr
    nostr_relays: list[str]
    lookback_days: int

    # Storage
    db_path: str

    # Status server
    http_host: str
    http_port: int
    fresh_window_hours: int

    # Logging
    log_level: str

    @classmethod
    def load(cls) -> Config:
        """Load configuration from environment variables.

        Raises ValueError if a required field is missing or empty, or if a
        tracked identity is not a valid npub/hex pubkey.
        """
        env_file = Path.home() / ".zapwatch" / "zapwatch.env"
        if env_file.exists():
            load_dotenv(env_file)

        missing = [
            name for name in _REQUIRED_FIELDS
            if not os.environ.get(name, "").strip()
        ]
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        tracked: set[str] = set()
        invalid: list[str] = []
        for value in _split_csv(os.environ["TRACKED_NPUBS"]):
            try:
                tracked.add(_normalize_pubkey(value))
            except Exception:
                invalid.append(value)
        if invalid:
            raise ValueError(
                f"Invalid pubkeys in TRACKED_NPUBS: {', '.join(invalid)}"
            )
        if not tracked:
            raise ValueError("TRACKED_NPUBS lists no pubkeys")

        return cls(
            tracked_pubkeys=frozenset(tracked),
            nostr_relays=_split_csv(os.environ.get("NOSTR_RELAYS", _DEFAULT_RELAYS)),
            lookback_days=int(os.environ.get("LOOKBACK_DAYS", "30")),
            db_path=os.environ.get("DB_PATH", "zapwatch.db").strip(),
            http_host=os.environ.get("HTTP_HOST", "0.0.0.0").strip(),
            http_port=int(os.environ.get("HTTP_PORT", "8080")),
            fresh_window_hours=int(os.environ.get("FRESH_WINDOW_HOURS", "24")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper(),
        )
