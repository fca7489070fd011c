"""
Solana RPC client helpers for the Wallet Indexer.

Uses the standard JSON-RPC interface. The public
``api.mainnet-beta.solana.com`` endpoint works but is rate-limited.
Uses ``httpx`` for async HTTP with retry + exponential backoff; every
request is bounded by the client timeout.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ._retry import async_rpc_post
from ..errors import RpcError
from ..models import ConfirmedTransaction, SignatureInfo

logger = logging.getLogger(__name__)

# Retry configuration
_MAX_RETRIES = 3
_BACKOFF_BASE = 1.5  # seconds

COMMITMENT = "confirmed"


class SolanaRpcClient:
    """Async Solana JSON-RPC client."""

    def __init__(
        self,
        endpoint: str,
        timeout: int = 15,
        *,
        max_retries: int = _MAX_RETRIES,
        backoff_base: float = _BACKOFF_BASE,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._client: httpx.AsyncClient | None = None
        self._id_counter = 0

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        before: Optional[str] = None,
        limit: int = 100,
    ) -> list[SignatureInfo]:
        """Return up to *limit* signatures for *address*, newest first.

        When *before* is given only signatures older than it are returned.
        Raises ``RpcError`` if the page cannot be fetched.
        """
        config: dict[str, Any] = {"limit": limit, "commitment": COMMITMENT}
        if before:
            config["before"] = before
        result = await self._call("getSignaturesForAddress", [address, config])
        if result is None:
            return []
        if not isinstance(result, list):
            raise RpcError("getSignaturesForAddress", f"expected a list, got {type(result).__name__}")
        page: list[SignatureInfo] = []
        for item in result:
            try:
                page.append(SignatureInfo.model_validate(item))
            except ValidationError:
                logger.warning("Skipping malformed signature entry: %r", item)
        return page

    async def get_transaction(self, signature: str) -> Optional[ConfirmedTransaction]:
        """Fetch a confirmed transaction by *signature*.

        Returns ``None`` when the node does not know the signature; raises
        ``RpcError`` on transport failure or an unparseable payload.
        """
        result = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": COMMITMENT,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is None:
            return None
        try:
            return ConfirmedTransaction.model_validate(result)
        except ValidationError as exc:
            raise RpcError("getTransaction", f"malformed transaction {signature}: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call(self, method: str, params: list[Any] | dict) -> Any:
        """JSON-RPC call with retry + exponential backoff."""
        self._id_counter += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._id_counter,
            "method": method,
            "params": params,
        }
        client = await self._get_client()
        return await async_rpc_post(
            client,
            self._endpoint,
            method=method,
            json_payload=payload,
            max_retries=self._max_retries,
            backoff_base=self._backoff_base,
        )
