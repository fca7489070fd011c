"""
Wallet Indexer package initializer.

This package exposes ``run_indexer`` (backfill then live ingestion for one
account) for external usage.  The pipeline pieces (store, reconciler,
walker, live adapter) should be imported from their respective modules.
"""

from .indexer import run_indexer  # noqa: F401

__all__ = ["run_indexer"]
