"""
Command line interface for the Wallet Indexer.

Usage::

    python src/main.py --wallet-address <ADDRESS> [--backfill-only]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import os

# Ensure ``src/`` is on the import path
sys.path.insert(0, os.path.dirname(__file__))

from config import DB_PATH, SOLANA_RPC_ENDPOINT, SOLANA_WS_ENDPOINT, WALLET_ADDRESS
from wallet_indexer import run_indexer
from wallet_indexer.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Backfill and stream token movements for one Solana wallet"
    )
    parser.add_argument(
        "--wallet-address",
        default=WALLET_ADDRESS or None,
        required=not WALLET_ADDRESS,
        help="Account to index (default: $WALLET_ADDRESS)",
    )
    parser.add_argument(
        "--rpc-url",
        default=None,
        help=f"Solana JSON-RPC endpoint (default: {SOLANA_RPC_ENDPOINT})",
    )
    parser.add_argument(
        "--ws-url",
        default=None,
        help="Pubsub websocket endpoint (default: derived from the RPC URL)",
    )
    parser.add_argument(
        "--db-path",
        default=DB_PATH,
        help=f"SQLite database file (default: {DB_PATH})",
    )
    parser.add_argument(
        "--backfill-only",
        action="store_true",
        help="Stop after the history backfill instead of streaming",
    )
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default=None,
        help="Override $LOG_FORMAT",
    )
    return parser


def main() -> None:
    """Entry point for the CLI."""
    args = build_parser().parse_args()
    setup_logging(fmt=args.log_format)

    rpc_url = args.rpc_url or SOLANA_RPC_ENDPOINT
    ws_url = args.ws_url or (SOLANA_WS_ENDPOINT if args.rpc_url is None else None)
    try:
        asyncio.run(
            run_indexer(
                args.wallet_address,
                rpc_url=rpc_url,
                ws_url=ws_url,
                db_path=args.db_path,
                backfill_only=args.backfill_only,
            )
        )
    except KeyboardInterrupt:
        logger.info("Interrupted – shutting down")


if __name__ == "__main__":
    main()
