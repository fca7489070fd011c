"""
Logging configuration for the Wallet Indexer.

Two output formats, picked by ``LOG_FORMAT`` (or ``--log-format``):
- ``text`` (default): one line per record, tagged with the transaction
- ``json``: one JSON object per record, for log shippers

Backfill and live workers interleave their output, so each record is tagged
with the transaction it belongs to.  ``transaction_context()`` binds the
signature and slot for the current task; records logged outside of it
carry ``-`` for both.
"""

from __future__ import annotations

import json as json_mod
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from config import LOG_FORMAT, LOG_LEVEL

_UNSET = "-"

signature_ctx: ContextVar[str] = ContextVar("signature", default=_UNSET)
slot_ctx: ContextVar[Optional[int]] = ContextVar("slot", default=None)

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(tx_tag)s] %(message)s"


def short_sig(signature: str, width: int = 16) -> str:
    """Truncate a base58 signature for log lines."""
    return signature if len(signature) <= width else signature[:width] + "..."


@contextmanager
def transaction_context(signature: str, slot: Optional[int] = None) -> Iterator[None]:
    """Tag every record logged inside the block with *signature* and *slot*.

    Nested use keeps an outer slot when the inner call does not know it.
    """
    sig_token = signature_ctx.set(signature)
    slot_token = slot_ctx.set(slot if slot is not None else slot_ctx.get())
    try:
        yield
    finally:
        slot_ctx.reset(slot_token)
        signature_ctx.reset(sig_token)


def _tx_tag(signature: str, slot: Optional[int]) -> str:
    if signature == _UNSET:
        return _UNSET
    if slot is None:
        return short_sig(signature)
    return f"{short_sig(signature)}@{slot}"


class _TransactionFilter(logging.Filter):
    """Copy the bound transaction onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        signature = signature_ctx.get()
        slot = slot_ctx.get()
        record.signature = signature  # type: ignore[attr-defined]
        record.slot = slot  # type: ignore[attr-defined]
        record.tx_tag = _tx_tag(signature, slot)  # type: ignore[attr-defined]
        return True


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "signature": getattr(record, "signature", signature_ctx.get()),
        }
        slot = getattr(record, "slot", slot_ctx.get())
        if slot is not None:
            entry["slot"] = slot
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json_mod.dumps(entry, default=str)


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure the root logger; arguments override the env settings."""
    level = (level or LOG_LEVEL).upper()
    fmt = fmt or LOG_FORMAT

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, defaults={"tx_tag": _UNSET}))
    handler.addFilter(_TransactionFilter())
    root.addHandler(handler)

    # httpx logs every request at INFO; a backfill makes thousands of them.
    logging.getLogger("httpx").setLevel(logging.WARNING)
