"""
Transaction reconciler.

Single entry point shared by the backfill walker and the live adapter: turns
one confirmed-transaction payload into a ``transactions`` row plus zero or
more ``token_movements`` rows.

A transaction without metadata is still recorded (fee 0, status failed, no
metadata document) so that fetch anomalies leave an audit trail.  Movements
are only derived when the node supplied *both* token balance lists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .balance_diff import diff_balances
from .logging_config import transaction_context
from .models import ConfirmedTransaction, TokenMovement, TransactionRecord
from .store import TransactionStore, WriteResult

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    signature: str
    transaction_inserted: bool = False
    movements_derived: int = 0
    movements_inserted: int = 0
    errors: int = 0

    @property
    def ok(self) -> bool:
        return self.errors == 0


def build_record(signature: str, tx: ConfirmedTransaction) -> TransactionRecord:
    """Normalise the envelope and metadata of *tx* into a transaction row."""
    meta = tx.meta
    if meta is None:
        return TransactionRecord(
            signature=signature,
            slot=tx.slot,
            block_time=tx.block_time,
            fee=0,
            status=False,
            meta_json=None,
        )
    return TransactionRecord(
        signature=signature,
        slot=tx.slot,
        block_time=tx.block_time,
        fee=meta.fee,
        status=meta.succeeded,
        meta_json=meta.to_document(),
    )


class TransactionReconciler:
    """Persist a confirmed transaction and the token movements it caused."""

    def __init__(self, store: TransactionStore) -> None:
        self._store = store

    async def reconcile(self, signature: str, tx: ConfirmedTransaction) -> ReconcileResult:
        """Record *tx* under *signature*.  Never raises on store failures."""
        with transaction_context(signature, tx.slot):
            return await self._reconcile(signature, tx)

    async def _reconcile(self, signature: str, tx: ConfirmedTransaction) -> ReconcileResult:
        result = ReconcileResult(signature=signature)
        record = build_record(signature, tx)

        written = await self._store.insert_transaction(record)
        result.transaction_inserted = written.inserted
        if written is WriteResult.FAILED:
            result.errors += 1

        balances = tx.meta.token_balances() if tx.meta is not None else None
        if balances is not None:
            pre, post = balances
            for movement in diff_balances(pre, post):
                result.movements_derived += 1
                row = TokenMovement.from_balance_movement(
                    signature, movement, tx.block_time
                )
                outcome = await self._store.insert_movement(row)
                if outcome.inserted:
                    result.movements_inserted += 1
                elif outcome is WriteResult.FAILED:
                    result.errors += 1
                logger.info(
                    "Token movement: %s %d %s (decimals=%d, account_index=%d)",
                    "Received" if movement.amount > 0 else "Sent",
                    abs(movement.amount),
                    movement.mint,
                    movement.decimals,
                    movement.account_index,
                )
        elif tx.meta is not None:
            logger.debug("Token balances missing – no movements derived")

        logger.info(
            "Processed transaction %s | slot=%d | status=%s | fee=%d | movements=%d",
            signature,
            record.slot,
            "Success" if record.status else "Failure",
            record.fee,
            result.movements_derived,
        )
        return result
