"""
Process wiring for a single tracked account.

Startup order is fixed: open the store, run the backfill to completion,
then (unless ``backfill_only``) stream live transactions until cancelled.
Every component receives the same store and stats objects explicitly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from config import (
    BACKFILL_PAGE_SIZE,
    DB_PATH,
    DB_POOL_SIZE,
    LIVE_QUEUE_SIZE,
    LIVE_RESOLVE_TIMEOUT,
    LIVE_WORKERS,
    REQUEST_TIMEOUT,
    RPC_MAX_RETRIES,
    SOLANA_RPC_ENDPOINT,
    WS_RECONNECT_MAX_SECONDS,
    derive_ws_endpoint,
)

from .backfill import BackfillWalker
from .data_sources.solana_rpc import SolanaRpcClient
from .data_sources.stream import LogsSubscription
from .live import LiveIngestionAdapter
from .reconciler import TransactionReconciler
from .stats import IngestStats
from .store import TransactionStore

logger = logging.getLogger(__name__)


async def run_indexer(
    account: str,
    *,
    rpc_url: str = SOLANA_RPC_ENDPOINT,
    ws_url: Optional[str] = None,
    db_path: str = DB_PATH,
    backfill_only: bool = False,
) -> IngestStats:
    """Index *account* into *db_path*; returns the run's counters."""
    if not account:
        raise ValueError("A wallet address is required")
    stats = IngestStats()

    try:
        await _run(account, rpc_url, ws_url, db_path, backfill_only, stats)
    finally:
        logger.info("Ingestion summary: %s", stats.status())
    return stats


async def _run(
    account: str,
    rpc_url: str,
    ws_url: Optional[str],
    db_path: str,
    backfill_only: bool,
    stats: IngestStats,
) -> None:
    async with TransactionStore(db_path, pool_size=DB_POOL_SIZE, stats=stats) as store, \
            SolanaRpcClient(rpc_url, timeout=REQUEST_TIMEOUT, max_retries=RPC_MAX_RETRIES) as rpc:
        reconciler = TransactionReconciler(store)

        walker = BackfillWalker(
            rpc, store, reconciler, account,
            page_size=BACKFILL_PAGE_SIZE, stats=stats,
        )
        await walker.run()
        logger.info("History fetch completed.")

        if not backfill_only:
            await _stream(account, rpc, reconciler, ws_url or derive_ws_endpoint(rpc_url), stats)


async def _stream(
    account: str,
    rpc: SolanaRpcClient,
    reconciler: TransactionReconciler,
    ws_url: str,
    stats: IngestStats,
) -> None:
    logger.info("Starting stream for wallet: %s...", account)
    adapter = LiveIngestionAdapter(
        rpc, reconciler,
        workers=LIVE_WORKERS,
        queue_size=LIVE_QUEUE_SIZE,
        resolve_timeout=LIVE_RESOLVE_TIMEOUT,
        stats=stats,
    )
    subscription = LogsSubscription(
        ws_url, account, reconnect_max_sec=WS_RECONNECT_MAX_SECONDS
    )
    adapter.start()
    try:
        await subscription.run(adapter.submit)
    except asyncio.CancelledError:
        logger.info("Stream cancelled")
        raise
    finally:
        subscription.stop()
        await adapter.stop()
