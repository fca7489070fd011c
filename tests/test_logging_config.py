"""Tests for the structured logging configuration."""

from __future__ import annotations

import json
import logging
import sys

from wallet_indexer.logging_config import (
    JSONFormatter,
    _TransactionFilter,
    setup_logging,
    short_sig,
    signature_ctx,
    slot_ctx,
    transaction_context,
)


def _record(name: str = "test", level: int = logging.INFO, msg: str = "hi", exc_info=None):
    return logging.LogRecord(
        name=name, level=level, pathname="", lineno=0,
        msg=msg, args=(), exc_info=exc_info,
    )


class TestTransactionContext:

    def test_binds_and_restores(self):
        with transaction_context("5xYzSig", slot=42):
            assert signature_ctx.get() == "5xYzSig"
            assert slot_ctx.get() == 42
        assert signature_ctx.get() == "-"
        assert slot_ctx.get() is None

    def test_nested_keeps_outer_slot(self):
        with transaction_context("outer", slot=7):
            with transaction_context("inner"):
                assert signature_ctx.get() == "inner"
                assert slot_ctx.get() == 7
            assert signature_ctx.get() == "outer"


class TestTransactionFilter:

    def test_tags_record_inside_context(self):
        f = _TransactionFilter()
        record = _record()
        with transaction_context("4" * 88, slot=250):
            assert f.filter(record) is True
        assert record.signature == "4" * 88  # type: ignore[attr-defined]
        assert record.slot == 250  # type: ignore[attr-defined]
        assert record.tx_tag == "4" * 16 + "...@250"  # type: ignore[attr-defined]

    def test_tag_without_slot(self):
        f = _TransactionFilter()
        record = _record()
        with transaction_context("abc"):
            f.filter(record)
        assert record.tx_tag == "abc"  # type: ignore[attr-defined]

    def test_default_dash(self):
        f = _TransactionFilter()
        record = _record()
        f.filter(record)
        assert record.signature == "-"  # type: ignore[attr-defined]
        assert record.slot is None  # type: ignore[attr-defined]
        assert record.tx_tag == "-"  # type: ignore[attr-defined]


class TestJSONFormatter:

    def test_basic_output(self):
        formatter = JSONFormatter()
        with transaction_context("sig999", slot=12):
            output = formatter.format(
                _record(name="mylogger", level=logging.WARNING, msg="something happened")
            )
        data = json.loads(output)
        assert data["level"] == "WARNING"
        assert data["logger"] == "mylogger"
        assert data["msg"] == "something happened"
        assert data["signature"] == "sig999"
        assert data["slot"] == 12

    def test_slot_omitted_outside_context(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert data["signature"] == "-"
        assert "slot" not in data

    def test_exception_included(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record(name="err", level=logging.ERROR, msg="fail", exc_info=sys.exc_info())
        data = json.loads(formatter.format(record))
        assert "exception" in data
        assert "ValueError" in data["exception"]


class TestSetupLogging:

    def test_text_format(self):
        setup_logging(level="debug", fmt="text")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_format(self):
        setup_logging(level="INFO", fmt="json")
        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(level="chatty", fmt="text")
        assert logging.getLogger().level == logging.INFO


class TestShortSig:

    def test_long_signature_truncated(self):
        sig = "4" * 88
        assert short_sig(sig) == "4" * 16 + "..."

    def test_short_signature_untouched(self):
        assert short_sig("abc") == "abc"
