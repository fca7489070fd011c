"""
Settings for the Wallet Indexer.

Every value is read once at import from the environment:

- where to read the chain: ``SOLANA_RPC_ENDPOINT``, ``SOLANA_WS_ENDPOINT``
  (derived from the RPC URL when unset) and ``WALLET_ADDRESS``
- where to write: ``DB_PATH`` and ``DB_POOL_SIZE``
- how hard to push the node: ``BACKFILL_PAGE_SIZE``, ``LIVE_WORKERS``,
  ``LIVE_QUEUE_SIZE``, ``LIVE_RESOLVE_TIMEOUT``, ``REQUEST_TIMEOUT``,
  ``RPC_MAX_RETRIES`` and ``WS_RECONNECT_MAX_SECONDS``
- ``LOG_LEVEL`` / ``LOG_FORMAT``

Numeric values outside their allowed range are clamped with a warning
rather than rejected.  ``main.py`` flags override the URL, wallet, database
and log format settings.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _parse_float(name: str, default: float, *, low: float, high: float) -> float:
    """Read *name* as a float clamped to [low, high]."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.error("%s=%r is not a number – using %s", name, raw, default)
        return default
    clamped = max(low, min(value, high))
    if clamped != value:
        logger.warning("%s=%s clamped to %s (allowed %s..%s)", name, raw, clamped, low, high)
    return clamped


def _parse_int(
    name: str, default: int, *, minimum: int = 1, maximum: Optional[int] = None
) -> int:
    """Read *name* as an int of at least *minimum* (and at most *maximum*)."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.error("%s=%r is not an integer – using %d", name, raw, default)
        return default
    clamped = max(minimum, value)
    if maximum is not None:
        clamped = min(clamped, maximum)
    if clamped != value:
        logger.warning("%s=%d clamped to %d", name, value, clamped)
    return clamped


def derive_ws_endpoint(rpc_endpoint: str) -> str:
    """Map an ``http(s)://`` RPC URL to its ``ws(s)://`` pubsub twin."""
    url = rpc_endpoint.strip()
    if url.startswith("https://"):
        return "wss://" + url[len("https://"):]
    if url.startswith("http://"):
        return "ws://" + url[len("http://"):]
    return url


# ---------------------------------------------------------------------------
# Solana RPC / pubsub
# ---------------------------------------------------------------------------
SOLANA_RPC_ENDPOINT: str = os.getenv(
    "SOLANA_RPC_ENDPOINT",
    "https://api.mainnet-beta.solana.com",
)
SOLANA_WS_ENDPOINT: str = os.getenv(
    "SOLANA_WS_ENDPOINT", derive_ws_endpoint(SOLANA_RPC_ENDPOINT)
)

# ---------------------------------------------------------------------------
# Tracked account (single wallet per process)
# ---------------------------------------------------------------------------
WALLET_ADDRESS: str = os.getenv("WALLET_ADDRESS", "")

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
DB_PATH: str = os.getenv("DB_PATH", "data/wallet.db")
DB_POOL_SIZE: int = _parse_int("DB_POOL_SIZE", 5, minimum=1)

# ---------------------------------------------------------------------------
# Ingestion limits
# ---------------------------------------------------------------------------
BACKFILL_PAGE_SIZE: int = _parse_int("BACKFILL_PAGE_SIZE", 100, minimum=1, maximum=1000)
LIVE_WORKERS: int = _parse_int("LIVE_WORKERS", 4, minimum=1)
LIVE_QUEUE_SIZE: int = _parse_int("LIVE_QUEUE_SIZE", 1000, minimum=1)
LIVE_RESOLVE_TIMEOUT: float = _parse_float(
    "LIVE_RESOLVE_TIMEOUT", 60.0, low=1.0, high=600.0
)

# ---------------------------------------------------------------------------
# HTTP / retry
# ---------------------------------------------------------------------------
REQUEST_TIMEOUT: int = _parse_int("REQUEST_TIMEOUT", 15, minimum=1)
RPC_MAX_RETRIES: int = _parse_int("RPC_MAX_RETRIES", 3, minimum=1)
WS_RECONNECT_MAX_SECONDS: float = _parse_float(
    "WS_RECONNECT_MAX_SECONDS", 60.0, low=1.0, high=3600.0
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
