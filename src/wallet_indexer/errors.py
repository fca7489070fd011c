"""
Exception types raised inside the Wallet Indexer.

Every error here is caught at an ingestion boundary (walker, live worker,
store write) and turned into a log line plus a counter; none of them is
meant to reach the top of the process.
"""

from __future__ import annotations


class IndexerError(Exception):
    """Base class for all indexer errors."""


class RpcError(IndexerError):
    """A JSON-RPC call failed after exhausting its retries."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"Solana RPC {method}: {message}")
        self.method = method


class StoreError(IndexerError):
    """A statement against the SQLite store failed."""
