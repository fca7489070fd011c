"""
Live ingestion adapter.

Receives one ``TransactionNotification`` per confirmed transaction touching
the tracked account, resolves it to the full transaction over RPC and hands
it to the reconciler.

Notifications are queued in a bounded ``asyncio.Queue`` and drained by a
fixed number of workers: when the queue is full ``submit`` waits, which in
turn pauses the websocket reader.  A notification whose resolution fails is
logged and dropped; it is never retried.

No existence check is made before reconciling: both inserts are idempotent,
so a signature also seen by the backfill is harmless.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .data_sources.solana_rpc import SolanaRpcClient
from .errors import RpcError
from .logging_config import short_sig, transaction_context
from .models import TransactionNotification
from .reconciler import ReconcileResult, TransactionReconciler
from .stats import IngestStats

logger = logging.getLogger(__name__)


class LiveIngestionAdapter:
    """Bounded worker pool that reconciles streamed transactions."""

    def __init__(
        self,
        rpc: SolanaRpcClient,
        reconciler: TransactionReconciler,
        *,
        workers: int = 4,
        queue_size: int = 1000,
        resolve_timeout: Optional[float] = 60.0,
        stats: Optional[IngestStats] = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._rpc = rpc
        self._reconciler = reconciler
        self._worker_count = workers
        self._queue: asyncio.Queue[TransactionNotification] = asyncio.Queue(maxsize=queue_size)
        self._resolve_timeout = resolve_timeout
        self._workers: list[asyncio.Task] = []
        self.stats = stats or IngestStats()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Spawn the worker tasks (idempotent)."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"live_worker_{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Live ingestion started with %d workers", self._worker_count)

    async def join(self) -> None:
        """Wait until every submitted notification has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel the workers.  Queued notifications are abandoned."""
        pending = self._queue.qsize()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        if pending:
            logger.warning("Live ingestion stopped with %d notifications unprocessed", pending)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Notification callback
    # ------------------------------------------------------------------

    async def submit(self, notification: TransactionNotification) -> None:
        """Queue *notification*, waiting while the queue is full."""
        self.stats.notifications_received += 1
        await self._queue.put(notification)

    async def process(self, notification: TransactionNotification) -> Optional[ReconcileResult]:
        """Resolve and reconcile one notification.  Never raises on fetch errors."""
        signature = notification.signature
        with transaction_context(signature, notification.slot or None):
            try:
                tx = await asyncio.wait_for(
                    self._rpc.get_transaction(signature), timeout=self._resolve_timeout
                )
            except RpcError as exc:
                self.stats.rpc_errors += 1
                self.stats.notifications_dropped += 1
                logger.error("Error fetching transaction %s: %s", signature, exc)
                return None
            except asyncio.TimeoutError:
                self.stats.rpc_errors += 1
                self.stats.notifications_dropped += 1
                logger.error(
                    "Timed out fetching transaction %s after %.0fs",
                    signature, self._resolve_timeout,
                )
                return None
            if tx is None:
                self.stats.notifications_dropped += 1
                logger.warning("Transaction %s not found on RPC node – dropped", signature)
                return None
            logger.info("Processing streamed transaction %s (slot %d)",
                        short_sig(signature), notification.slot)
        return await self._reconciler.reconcile(signature, tx)

    async def _worker(self, n: int) -> None:
        while True:
            notification = await self._queue.get()
            try:
                await self.process(notification)
            except asyncio.CancelledError:
                raise
            except Exception:
                self.stats.notifications_dropped += 1
                logger.exception(
                    "live_worker_%d failed on %s", n, notification.signature
                )
            finally:
                self._queue.task_done()
