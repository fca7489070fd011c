"""Tests for the pure balance diff engine."""

from __future__ import annotations

import pytest

from conftest import balances, token_balance
from wallet_indexer.balance_diff import diff_balances, parse_raw_amount


class TestParseRawAmount:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("100", 100),
            ("0", 0),
            (" 42 ", 42),
            ("-7", -7),
            ("18446744073709551615", 18446744073709551615),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_raw_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "", "1.5", "1_000", "0x10", "-", None])
    def test_malformed_is_zero(self, raw):
        assert parse_raw_amount(raw) == 0


class TestDiffBalances:

    def test_decrease(self):
        pre = balances(token_balance(0, "M", "100"))
        post = balances(token_balance(0, "M", "70"))
        movements = diff_balances(pre, post)
        assert len(movements) == 1
        assert movements[0].mint == "M"
        assert movements[0].amount == -30

    def test_new_account_funding(self):
        post = balances(token_balance(0, "M", "50"))
        movements = diff_balances([], post)
        assert [(m.mint, m.amount) for m in movements] == [("M", 50)]

    def test_identical_snapshots_emit_nothing(self):
        pre = balances(token_balance(0, "M", "100"), token_balance(2, "N", "5"))
        post = balances(token_balance(0, "M", "100"), token_balance(2, "N", "5"))
        assert diff_balances(pre, post) == []

    def test_malformed_post_amount_treated_as_zero(self):
        pre = balances(token_balance(0, "M", "10"))
        post = balances(token_balance(0, "M", "abc"))
        movements = diff_balances(pre, post)
        assert movements[0].amount == -10

    def test_malformed_amount_on_both_sides_is_noop(self):
        pre = balances(token_balance(0, "M", "abc"))
        post = balances(token_balance(0, "M", "abc"))
        assert diff_balances(pre, post) == []

    def test_decimals_copied_not_applied(self):
        pre = balances(token_balance(3, "USDC", "1000000", decimals=6))
        post = balances(token_balance(3, "USDC", "2500000", decimals=6))
        (movement,) = diff_balances(pre, post)
        assert movement.amount == 1_500_000
        assert movement.decimals == 6

    def test_same_mint_different_accounts_are_independent(self):
        pre = balances(token_balance(1, "M", "100"), token_balance(2, "M", "0"))
        post = balances(token_balance(1, "M", "60"), token_balance(2, "M", "40"))
        movements = diff_balances(pre, post)
        assert [(m.account_index, m.amount) for m in movements] == [(1, -40), (2, 40)]

    def test_account_closed_in_post_is_ignored(self):
        pre = balances(token_balance(1, "M", "100"))
        assert diff_balances(pre, []) == []

    def test_order_independent(self):
        pre_a = balances(token_balance(1, "A", "10"), token_balance(2, "B", "20"))
        post_a = balances(token_balance(1, "A", "15"), token_balance(2, "B", "5"))
        forward = diff_balances(pre_a, post_a)
        backward = diff_balances(list(reversed(pre_a)), list(reversed(post_a)))
        assert forward == backward
        assert [(m.account_index, m.mint) for m in forward] == [(1, "A"), (2, "B")]

    def test_duplicate_pre_key_first_match_wins(self):
        pre = balances(token_balance(0, "M", "100"), token_balance(0, "M", "999"))
        post = balances(token_balance(0, "M", "150"))
        (movement,) = diff_balances(pre, post)
        assert movement.amount == 50


class TestOwnerAttribution:

    def test_outgoing_owner_is_source(self):
        pre = balances(token_balance(0, "M", "100", owner="W1"))
        post = balances(token_balance(0, "M", "40", owner="W1"))
        (movement,) = diff_balances(pre, post)
        assert movement.source == "W1"
        assert movement.destination is None

    def test_incoming_owner_is_destination(self):
        post = balances(token_balance(0, "M", "40", owner="W2"))
        (movement,) = diff_balances([], post)
        assert movement.destination == "W2"
        assert movement.source is None

    def test_missing_owner_leaves_both_empty(self):
        pre = balances(token_balance(0, "M", "100"))
        post = balances(token_balance(0, "M", "40"))
        (movement,) = diff_balances(pre, post)
        assert movement.source is None
        assert movement.destination is None

    def test_owner_taken_from_post_snapshot(self):
        pre = balances(token_balance(0, "M", "100", owner="OLD"))
        post = balances(token_balance(0, "M", "10", owner="NEW"))
        (movement,) = diff_balances(pre, post)
        assert movement.source == "NEW"
