"""
SQLite persistence gateway for the Wallet Indexer.

Owns a small bounded pool of ``aiosqlite`` connections that concurrent live
workers share.  Every write is a single autocommitted statement; there is no
transaction spanning a ``transactions`` row and its ``token_movements`` rows.

Writes are best-effort: failures are logged, counted and reported as
``WriteResult.FAILED`` so one bad write never aborts a backfill page or a
live worker.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Optional

import aiosqlite

from .errors import StoreError
from .logging_config import short_sig
from .models import TokenMovement, TransactionRecord
from .stats import IngestStats

logger = logging.getLogger(__name__)

SCHEMA: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS transactions (
        signature  TEXT PRIMARY KEY,
        slot       INTEGER NOT NULL,
        block_time INTEGER,
        fee        INTEGER NOT NULL,
        status     BOOLEAN NOT NULL,
        meta_json  TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS token_movements (
        id            INTEGER PRIMARY KEY AUTOINCREMENT,
        signature     TEXT NOT NULL REFERENCES transactions(signature),
        account_index INTEGER NOT NULL,
        mint          TEXT NOT NULL,
        amount        INTEGER NOT NULL,
        decimals      INTEGER NOT NULL,
        source        TEXT,
        destination   TEXT,
        block_time    INTEGER
    )
    """,
    # Re-reconciling a signature (live and backfill overlap) must not
    # duplicate movements.
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_movements_position
        ON token_movements(signature, account_index, mint)
    """,
    "CREATE INDEX IF NOT EXISTS idx_transactions_block_time ON transactions(block_time)",
    "CREATE INDEX IF NOT EXISTS idx_movements_mint ON token_movements(mint)",
)


class WriteResult(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    FAILED = "failed"

    @property
    def inserted(self) -> bool:
        return self is WriteResult.INSERTED


_INSERT_TRANSACTION = """
    INSERT INTO transactions (signature, slot, block_time, fee, status, meta_json)
    VALUES (?, ?, ?, ?, ?, ?)
    ON CONFLICT(signature) DO NOTHING
"""

_INSERT_MOVEMENT = """
    INSERT INTO token_movements
        (signature, account_index, mint, amount, decimals, source, destination, block_time)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(signature, account_index, mint) DO NOTHING
"""


class TransactionStore:
    """Async SQLite store with a bounded connection pool.

    Connections are opened lazily up to *pool_size* and handed out through
    an ``asyncio.Queue``; callers beyond the cap wait for a free one.
    """

    def __init__(
        self,
        db_path: str = "data/wallet.db",
        *,
        pool_size: int = 5,
        stats: Optional[IngestStats] = None,
    ) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be >= 1")
        self._db_path = db_path
        # Each ":memory:" connection is a separate database.
        self._pool_size = 1 if db_path == ":memory:" else pool_size
        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue()
        self._all: list[aiosqlite.Connection] = []
        self._open_lock = asyncio.Lock()
        self._initialised = False
        self.stats = stats or IngestStats()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> "TransactionStore":
        """Create the database file if missing and run the schema migration."""
        if self._db_path != ":memory:":
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        async with self._connection() as db:
            await self._migrate(db)
        return self

    async def close(self) -> None:
        """Close every pooled connection."""
        for conn in self._all:
            try:
                await conn.close()
            except (sqlite3.Error, ValueError):
                logger.debug("Error closing SQLite connection", exc_info=True)
        self._all.clear()
        self._idle = asyncio.Queue()
        self._initialised = False

    async def __aenter__(self) -> "TransactionStore":
        return await self.open()

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def _migrate(self, db: aiosqlite.Connection) -> None:
        if self._initialised:
            return
        for statement in SCHEMA:
            await db.execute(statement)
        await db.commit()
        self._initialised = True
        logger.info("SQLite schema ready at %s", self._db_path)

    async def _new_connection(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self._db_path)
        if self._db_path != ":memory:":
            await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a pooled connection, opening one if under the cap."""
        conn: Optional[aiosqlite.Connection] = None
        if self._idle.empty():
            async with self._open_lock:
                if len(self._all) < self._pool_size:
                    conn = await self._new_connection()
                    self._all.append(conn)
        if conn is None:
            conn = await self._idle.get()
        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)

    async def _execute(self, sql: str, params: tuple[Any, ...]) -> int:
        """Run one write statement and return its rowcount."""
        try:
            async with self._connection() as db:
                cursor = await db.execute(sql, params)
                await db.commit()
                return cursor.rowcount
        except (sqlite3.Error, ValueError, OverflowError) as exc:
            raise StoreError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def insert_transaction(self, record: TransactionRecord) -> WriteResult:
        """Insert *record* unless its signature already exists.

        A duplicate signature is a no-op: the first write's fields are kept.
        """
        meta_json = (
            json.dumps(record.meta_json, default=str)
            if record.meta_json is not None
            else None
        )
        try:
            inserted = await self._execute(
                _INSERT_TRANSACTION,
                (
                    record.signature,
                    record.slot,
                    record.block_time,
                    record.fee,
                    record.status,
                    meta_json,
                ),
            )
        except StoreError as exc:
            self.stats.store_errors += 1
            logger.error(
                "Failed to save transaction %s: %s", record.signature, exc, exc_info=True
            )
            return WriteResult.FAILED
        if inserted:
            self.stats.transactions_written += 1
            return WriteResult.INSERTED
        self.stats.transactions_duplicate += 1
        logger.debug("Transaction %s already stored", short_sig(record.signature))
        return WriteResult.DUPLICATE

    async def insert_movement(self, movement: TokenMovement) -> WriteResult:
        """Append a token movement; a repeat of the same position is ignored."""
        try:
            inserted = await self._execute(
                _INSERT_MOVEMENT,
                (
                    movement.signature,
                    movement.account_index,
                    movement.mint,
                    movement.amount,
                    movement.decimals,
                    movement.source,
                    movement.destination,
                    movement.block_time,
                ),
            )
        except StoreError as exc:
            self.stats.store_errors += 1
            logger.error(
                "Failed to save token movement for %s: %s",
                movement.signature, exc, exc_info=True,
            )
            return WriteResult.FAILED
        if inserted:
            self.stats.movements_written += 1
            return WriteResult.INSERTED
        self.stats.movements_duplicate += 1
        return WriteResult.DUPLICATE

    async def transaction_exists(self, signature: str) -> bool:
        """Return True if *signature* already has a ``transactions`` row.

        A read failure reports False: the caller then reprocesses the
        signature, which both idempotent inserts tolerate.
        """
        try:
            async with self._connection() as db:
                cursor = await db.execute(
                    "SELECT 1 FROM transactions WHERE signature = ?", (signature,)
                )
                row = await cursor.fetchone()
                await cursor.close()
        except (sqlite3.Error, ValueError, OverflowError):
            self.stats.store_errors += 1
            logger.warning("Existence check failed for %s", signature, exc_info=True)
            return False
        return row is not None

    async def get_transaction(self, signature: str) -> Optional[TransactionRecord]:
        """Load one stored transaction row, or None if absent."""
        async with self._connection() as db:
            cursor = await db.execute(
                "SELECT signature, slot, block_time, fee, status, meta_json "
                "FROM transactions WHERE signature = ?",
                (signature,),
            )
            row = await cursor.fetchone()
            await cursor.close()
        if row is None:
            return None
        sig, slot, block_time, fee, status, meta_json = row
        return TransactionRecord(
            signature=sig,
            slot=slot,
            block_time=block_time,
            fee=fee,
            status=bool(status),
            meta_json=json.loads(meta_json) if meta_json else None,
        )

    async def get_movements(self, signature: str) -> list[TokenMovement]:
        """Return the movements recorded for *signature*, in position order."""
        async with self._connection() as db:
            cursor = await db.execute(
                "SELECT signature, account_index, mint, amount, decimals, "
                "source, destination, block_time FROM token_movements "
                "WHERE signature = ? ORDER BY account_index, mint",
                (signature,),
            )
            rows = await cursor.fetchall()
            await cursor.close()
        return [
            TokenMovement(
                signature=r[0],
                account_index=r[1],
                mint=r[2],
                amount=r[3],
                decimals=r[4],
                source=r[5],
                destination=r[6],
                block_time=r[7],
            )
            for r in rows
        ]
