"""
Pydantic models used throughout the Wallet Indexer.

The RPC-facing models accept the camelCase JSON emitted by a Solana node
(``populate_by_name`` lets tests build them with snake_case too) and keep any
field they do not declare, so the full metadata document can be persisted
for audit.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Token balance snapshots
# ---------------------------------------------------------------------------
class UiTokenAmount(BaseModel):
    """Raw token amount as reported by the node."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    amount: Optional[str] = Field(
        None, description="Raw integer amount encoded as a string (unscaled)"
    )
    decimals: int = Field(0, description="Decimal precision of the mint")

    @field_validator("amount", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        # Nodes always send a string; anything else is kept for lenient parsing.
        if value is None or isinstance(value, str):
            return value
        return str(value)


class TokenBalance(BaseModel):
    """A token account's holding of one mint, before or after a transaction."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    account_index: int = Field(..., alias="accountIndex")
    mint: str
    owner: Optional[str] = None
    ui_token_amount: UiTokenAmount = Field(
        default_factory=UiTokenAmount, alias="uiTokenAmount"
    )

    @property
    def key(self) -> tuple[int, str]:
        return (self.account_index, self.mint)


# ---------------------------------------------------------------------------
# Confirmed transaction payload
# ---------------------------------------------------------------------------
class TransactionMeta(BaseModel):
    """Status metadata attached to a confirmed transaction."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    err: Any = None
    fee: int = 0
    pre_token_balances: Optional[list[TokenBalance]] = Field(
        None, alias="preTokenBalances"
    )
    post_token_balances: Optional[list[TokenBalance]] = Field(
        None, alias="postTokenBalances"
    )

    @property
    def succeeded(self) -> bool:
        return self.err is None

    def token_balances(
        self,
    ) -> Optional[tuple[list[TokenBalance], list[TokenBalance]]]:
        """Return ``(pre, post)`` only when the node supplied both lists."""
        if self.pre_token_balances is None or self.post_token_balances is None:
            return None
        return (self.pre_token_balances, self.post_token_balances)

    def to_document(self) -> dict[str, Any]:
        """Full metadata as a JSON-ready dict, including undeclared fields."""
        return self.model_dump(mode="json", by_alias=True)


class ConfirmedTransaction(BaseModel):
    """Result of ``getTransaction`` for one signature."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    slot: int
    block_time: Optional[int] = Field(None, alias="blockTime")
    meta: Optional[TransactionMeta] = None


class SignatureInfo(BaseModel):
    """One entry of a ``getSignaturesForAddress`` page."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    signature: str
    slot: int = 0
    err: Any = None
    block_time: Optional[int] = Field(None, alias="blockTime")
    confirmation_status: Optional[str] = Field(None, alias="confirmationStatus")


class TransactionNotification(BaseModel):
    """A streamed notice that a transaction touching the account confirmed."""

    signature: str
    slot: int = 0
    err: Any = None


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------
class BalanceMovement(BaseModel):
    """Net change of one token account position, derived by the diff engine."""

    account_index: int
    mint: str
    decimals: int
    amount: int
    source: Optional[str] = None
    destination: Optional[str] = None


class TransactionRecord(BaseModel):
    """Row of the ``transactions`` table."""

    signature: str
    slot: int = Field(..., ge=0)
    block_time: Optional[int] = None
    fee: int = Field(0, ge=0)
    status: bool = False
    meta_json: Optional[dict[str, Any]] = None


class TokenMovement(BaseModel):
    """Row of the ``token_movements`` table."""

    signature: str
    account_index: int
    mint: str
    amount: int
    decimals: int
    source: Optional[str] = None
    destination: Optional[str] = None
    block_time: Optional[int] = None

    @classmethod
    def from_balance_movement(
        cls, signature: str, movement: BalanceMovement, block_time: Optional[int]
    ) -> "TokenMovement":
        return cls(
            signature=signature,
            block_time=block_time,
            **movement.model_dump(),
        )
