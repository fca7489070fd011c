"""
Async JSON-RPC POST with exponential backoff.

Used by the Solana RPC client for every call.  Unlike a plain HTTP helper,
the caller needs to tell "the node answered null" apart from "the call
failed", so failures raise ``RpcError`` instead of returning ``None``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..errors import RpcError

logger = logging.getLogger(__name__)


def _parse_retry_after(resp: httpx.Response, default: float) -> float:
    """Extract wait time from a ``Retry-After`` header, or use *default*.

    The header may be an integer (seconds) or an HTTP-date.  We only handle
    the integer form since that's what most RPC providers emit.
    """
    raw = resp.headers.get("retry-after")
    if raw is not None:
        try:
            return max(float(raw), 0.5)
        except (ValueError, TypeError):
            pass
    return default


async def async_rpc_post(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str,
    json_payload: Any,
    max_retries: int = 3,
    backoff_base: float = 1.5,
) -> Any:
    """POST a JSON-RPC *payload* and return its ``result`` member.

    Retries on 429, 5xx and transport errors.  A 403 or an RPC-level
    ``error`` object fails immediately since retrying will not change it.
    ``result`` may legitimately be ``None`` (e.g. unknown signature).
    """
    label = f"Solana RPC ({method})"
    last_error = "no attempts made"
    for attempt in range(max_retries):
        wait = backoff_base * (2 ** attempt)
        try:
            resp = await client.post(url, json=json_payload)
            if resp.status_code == 429:
                wait = _parse_retry_after(resp, wait)
                last_error = "rate-limited"
                logger.warning("%s rate-limited, retry in %.1fs", label, wait)
                if attempt < max_retries - 1:
                    await asyncio.sleep(wait)
                continue
            if resp.status_code == 403:
                raise RpcError(method, "403 – endpoint blocks this method")
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            last_error = f"HTTP {exc.response.status_code}"
            logger.warning("%s HTTP %s", label, exc.response.status_code)
        except httpx.RequestError as exc:
            last_error = f"request failed: {exc}"
            logger.warning("%s request failed: %s", label, exc)
        except ValueError as exc:
            last_error = f"invalid JSON body: {exc}"
            logger.warning("%s returned invalid JSON", label)
        else:
            if not isinstance(body, dict):
                raise RpcError(method, f"unexpected response body {body!r}")
            if body.get("error") is not None:
                raise RpcError(method, f"error {body['error']}")
            return body.get("result")

        if attempt < max_retries - 1:
            await asyncio.sleep(wait)
    raise RpcError(method, f"all {max_retries} retries exhausted ({last_error})")
