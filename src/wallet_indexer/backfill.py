"""
Backfill walker.

Walks the account's signature history backwards, one page at a time,
reconciling every signature the store does not already know.  The walk
stops when a page comes back empty or short, or when a page cannot be
fetched at all.  A single transaction that fails to load is skipped and the
cursor moves past it regardless.

The walker is awaited to completion before live ingestion starts, so the
store holds a consistent "already known" set by then.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .data_sources.solana_rpc import SolanaRpcClient
from .errors import RpcError
from .logging_config import short_sig
from .reconciler import TransactionReconciler
from .stats import IngestStats
from .store import TransactionStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


@dataclass
class BackfillReport:
    pages: int = 0
    seen: int = 0
    reconciled: int = 0
    skipped: int = 0
    failed: int = 0
    halted_on_error: bool = False
    cursor: Optional[str] = None


class BackfillWalker:
    """Paginate ``getSignaturesForAddress`` newest to oldest."""

    def __init__(
        self,
        rpc: SolanaRpcClient,
        store: TransactionStore,
        reconciler: TransactionReconciler,
        account: str,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        stats: Optional[IngestStats] = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._rpc = rpc
        self._store = store
        self._reconciler = reconciler
        self._account = account
        self._page_size = page_size
        self.stats = stats or IngestStats()

    async def run(self) -> BackfillReport:
        """Walk the full history and return what was done."""
        logger.info("Fetching history for wallet: %s...", self._account)
        report = BackfillReport()
        before: Optional[str] = None

        while True:
            try:
                page = await self._rpc.get_signatures_for_address(
                    self._account, before=before, limit=self._page_size
                )
            except RpcError as exc:
                self.stats.rpc_errors += 1
                report.halted_on_error = True
                logger.error("Error fetching signatures: %s", exc)
                break
            report.pages += 1
            if not page:
                break

            for info in page:
                report.seen += 1
                await self._visit(info.signature, report)
                before = info.signature
                report.cursor = before

            if len(page) < self._page_size:
                break

        logger.info(
            "Finished fetching history for wallet: %s "
            "(pages=%d reconciled=%d skipped=%d failed=%d)",
            self._account, report.pages, report.reconciled, report.skipped, report.failed,
        )
        return report

    async def _visit(self, signature: str, report: BackfillReport) -> None:
        if await self._store.transaction_exists(signature):
            report.skipped += 1
            logger.debug("Transaction %s already exists in the database, skipping", short_sig(signature))
            return

        try:
            tx = await self._rpc.get_transaction(signature)
        except RpcError as exc:
            self.stats.rpc_errors += 1
            report.failed += 1
            logger.error("Error fetching transaction %s: %s", signature, exc)
            return
        if tx is None:
            report.failed += 1
            logger.warning("Transaction %s not found on RPC node – skipped", signature)
            return

        await self._reconciler.reconcile(signature, tx)
        report.reconciled += 1
