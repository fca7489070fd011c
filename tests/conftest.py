"""Shared test fixtures for the Wallet Indexer test suite."""

from __future__ import annotations

import sys
import os

# Ensure src/ is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest
import pytest_asyncio

from wallet_indexer.models import ConfirmedTransaction, SignatureInfo, TokenBalance
from wallet_indexer.stats import IngestStats
from wallet_indexer.store import TransactionStore


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def token_balance(idx: int, mint: str, amount: str, decimals: int = 6, owner=None) -> dict:
    """One entry of ``preTokenBalances`` / ``postTokenBalances`` as sent by a node."""
    entry = {
        "accountIndex": idx,
        "mint": mint,
        "uiTokenAmount": {
            "amount": amount,
            "decimals": decimals,
            "uiAmountString": amount,
        },
        "programId": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
    }
    if owner is not None:
        entry["owner"] = owner
    return entry


def balances(*entries: dict) -> list[TokenBalance]:
    return [TokenBalance.model_validate(e) for e in entries]


def rpc_transaction(
    *,
    slot: int = 250_000_000,
    block_time=1_735_689_700,
    fee: int = 5000,
    err=None,
    pre=None,
    post=None,
    with_meta: bool = True,
) -> dict:
    """A ``getTransaction`` result in ``json`` encoding."""
    tx: dict = {
        "slot": slot,
        "blockTime": block_time,
        "transaction": {"signatures": ["sig"], "message": {"accountKeys": []}},
        "version": 0,
    }
    if with_meta:
        meta: dict = {
            "err": err,
            "status": {"Ok": None} if err is None else {"Err": err},
            "fee": fee,
            "preBalances": [1_000_000, 0],
            "postBalances": [995_000, 0],
            "logMessages": ["Program log: Instruction: Transfer"],
        }
        if pre is not None:
            meta["preTokenBalances"] = pre
        if post is not None:
            meta["postTokenBalances"] = post
        tx["meta"] = meta
    else:
        tx["meta"] = None
    return tx


def confirmed(**kwargs) -> ConfirmedTransaction:
    return ConfirmedTransaction.model_validate(rpc_transaction(**kwargs))


def signature_page(prefix: str, size: int, start_slot: int = 1000) -> list[SignatureInfo]:
    return [
        SignatureInfo(signature=f"{prefix}{i}", slot=start_slot - i)
        for i in range(size)
    ]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def stats():
    return IngestStats()


@pytest_asyncio.fixture
async def store(tmp_path, stats):
    s = TransactionStore(db_path=str(tmp_path / "wallet.db"), pool_size=3, stats=stats)
    await s.open()
    yield s
    await s.close()


@pytest.fixture
def usdc_transaction() -> ConfirmedTransaction:
    """The USDC send used across reconciler tests: 1000 → 800 on account 1."""
    return confirmed(
        fee=5000,
        pre=[token_balance(1, "USDC", "1000", 6)],
        post=[token_balance(1, "USDC", "800", 6, owner="W1")],
    )
