"""
Live transaction feed over the Solana pubsub websocket.

Subscribes with ``logsSubscribe`` and a ``mentions`` filter for one account,
so the node pushes one ``logsNotification`` per confirmed transaction that
touches it.  Each notification carries the signature and slot only; the
full transaction is resolved later over HTTP by the live adapter.

The connection is re-established with exponential backoff until ``stop()``
is called.  Notifications emitted while disconnected are lost; the next
backfill run picks them up.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, InvalidURI, WebSocketException

from ..logging_config import short_sig
from ..models import TransactionNotification

logger = logging.getLogger(__name__)

DEFAULT_WS_PING_INTERVAL = 30.0
DEFAULT_WS_PING_TIMEOUT = 10.0
DEFAULT_RECONNECT_MIN_SEC = 1.0
DEFAULT_RECONNECT_MAX_SEC = 60.0
_WS_CLOSE_TIMEOUT = 5.0

NotificationHandler = Callable[[TransactionNotification], Awaitable[Any]]


def build_subscribe_request(request_id: int, account: str, commitment: str = "confirmed") -> dict:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "logsSubscribe",
        "params": [{"mentions": [account]}, {"commitment": commitment}],
    }


def parse_logs_notification(msg: dict) -> Optional[TransactionNotification]:
    """Extract a notification from a decoded ``logsNotification`` message."""
    if msg.get("method") != "logsNotification":
        return None
    result = (msg.get("params") or {}).get("result") or {}
    value = result.get("value") or {}
    signature = value.get("signature")
    if not signature or not isinstance(signature, str):
        return None
    slot = (result.get("context") or {}).get("slot") or 0
    return TransactionNotification(signature=signature, slot=slot, err=value.get("err"))


class LogsSubscription:
    """Reconnecting ``logsSubscribe`` client for a single account."""

    def __init__(
        self,
        ws_url: str,
        account: str,
        *,
        commitment: str = "confirmed",
        reconnect_min_sec: float = DEFAULT_RECONNECT_MIN_SEC,
        reconnect_max_sec: float = DEFAULT_RECONNECT_MAX_SEC,
        ping_interval: Optional[float] = DEFAULT_WS_PING_INTERVAL,
        ping_timeout: Optional[float] = DEFAULT_WS_PING_TIMEOUT,
    ) -> None:
        if not ws_url.strip():
            raise ValueError("ws_url must be non-empty")
        if not account.strip():
            raise ValueError("account must be non-empty")
        self._ws_url = ws_url
        self._account = account
        self._commitment = commitment
        self._reconnect_min = reconnect_min_sec
        self._reconnect_max = reconnect_max_sec
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._stop = asyncio.Event()
        self._next_rpc_id = 0
        self.subscription_id: Optional[int] = None

    def stop(self) -> None:
        """Signal the subscription to stop after the current message."""
        self._stop.set()

    def _next_id(self) -> int:
        self._next_rpc_id += 1
        return self._next_rpc_id

    async def run(self, on_notification: NotificationHandler) -> None:
        """Connect, subscribe and forward notifications until stopped."""
        backoff = self._reconnect_min
        run_id = 0
        while not self._stop.is_set():
            run_id += 1
            try:
                logger.info("Connecting to %s (attempt %d)", self._ws_url, run_id)
                async with websockets.connect(
                    self._ws_url,
                    ping_interval=self._ping_interval,
                    ping_timeout=self._ping_timeout,
                    close_timeout=_WS_CLOSE_TIMEOUT,
                ) as ws:
                    backoff = self._reconnect_min
                    request_id = self._next_id()
                    await ws.send(json.dumps(
                        build_subscribe_request(request_id, self._account, self._commitment)
                    ))
                    await self._receive_loop(ws, request_id, on_notification)
            except asyncio.CancelledError:
                raise
            except ConnectionClosed as exc:
                logger.warning("Stream disconnected (code=%s reason=%s)", exc.code, exc.reason)
            except InvalidURI as exc:
                logger.error("Invalid websocket URL %s: %s", self._ws_url, exc)
                self._stop.set()
            except WebSocketException as exc:
                logger.warning("Stream handshake failed: %s", exc)
            except OSError as exc:
                logger.warning("Stream connection failed: %s", exc)
            finally:
                self.subscription_id = None

            if self._stop.is_set():
                break
            logger.info("Reconnecting stream in %.1fs", backoff)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=backoff)
            except asyncio.TimeoutError:
                pass
            backoff = min(backoff * 2, self._reconnect_max)
        logger.info("Stream for %s stopped", self._account)

    async def _receive_loop(
        self,
        ws: Any,
        request_id: int,
        on_notification: NotificationHandler,
    ) -> None:
        async for raw in ws:
            if self._stop.is_set():
                return
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Ignoring non-JSON stream frame")
                continue
            if not isinstance(msg, dict):
                continue

            if msg.get("id") == request_id:
                if "error" in msg:
                    # Bad filter / unsupported method: reconnecting won't help.
                    logger.error("logsSubscribe rejected: %s", msg["error"])
                    self._stop.set()
                    return
                self.subscription_id = msg.get("result")
                logger.info(
                    "Subscribed to transactions mentioning %s (subscription=%s)",
                    self._account, self.subscription_id,
                )
                continue

            notification = parse_logs_notification(msg)
            if notification is None:
                continue
            logger.debug(
                "Stream event %s at slot %d",
                short_sig(notification.signature), notification.slot,
            )
            await on_notification(notification)
