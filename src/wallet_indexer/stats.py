"""
Counters for errors that the ingestion paths swallow.

Each ingestion boundary logs and continues on failure; these counters make
the resulting gaps observable.  One ``IngestStats`` instance is shared by the
store, reconciler, walker and live adapter of a process.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class IngestStats:
    transactions_written: int = 0
    transactions_duplicate: int = 0
    movements_written: int = 0
    movements_duplicate: int = 0
    rpc_errors: int = 0
    store_errors: int = 0
    notifications_received: int = 0
    notifications_dropped: int = 0

    @property
    def error_count(self) -> int:
        return self.rpc_errors + self.store_errors + self.notifications_dropped

    def status(self) -> dict[str, int]:
        """Return a serialisable snapshot for the shutdown summary."""
        snapshot = asdict(self)
        snapshot["error_count"] = self.error_count
        return snapshot
