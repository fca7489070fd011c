"""
Balance diff engine.

Derives token movements by comparing the pre- and post-transaction token
balance snapshots of a confirmed transaction.  Pure functions only: no I/O,
no logging, nothing that depends on the order of the input lists.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .models import BalanceMovement, TokenBalance


def parse_raw_amount(raw: Optional[str]) -> int:
    """Parse a string-encoded raw token amount.

    Malformed or missing values count as 0 so that one bad field never
    drops a whole transaction.
    """
    if raw is None:
        return 0
    text = str(raw).strip()
    digits = text[1:] if text.startswith(("-", "+")) else text
    # int() would also accept "1_000" and non-ASCII digits; the node never does.
    if not (digits.isascii() and digits.isdigit()):
        return 0
    return int(text)


def _index_by_key(balances: Iterable[TokenBalance]) -> dict[tuple[int, str], TokenBalance]:
    # First occurrence wins when a (account_index, mint) pair repeats.
    index: dict[tuple[int, str], TokenBalance] = {}
    for balance in balances:
        index.setdefault(balance.key, balance)
    return index


def diff_balances(
    pre: Iterable[TokenBalance],
    post: Iterable[TokenBalance],
) -> list[BalanceMovement]:
    """Return the non-zero net movements between *pre* and *post*.

    Movements are keyed by ``(account_index, mint)`` of the *post* snapshots;
    a post snapshot with no pre counterpart is a newly funded account (pre
    amount 0).  The owner on the post snapshot is the ``source`` of a
    decrease and the ``destination`` of an increase.  Output is sorted by
    ``(account_index, mint)``.
    """
    pre_index = _index_by_key(pre)
    post_index = _index_by_key(post)

    movements: list[BalanceMovement] = []
    for key in sorted(post_index):
        after = post_index[key]
        before = pre_index.get(key)
        pre_amount = parse_raw_amount(before.ui_token_amount.amount) if before else 0
        post_amount = parse_raw_amount(after.ui_token_amount.amount)

        net = post_amount - pre_amount
        if net == 0:
            continue

        movements.append(
            BalanceMovement(
                account_index=after.account_index,
                mint=after.mint,
                decimals=after.ui_token_amount.decimals,
                amount=net,
                source=after.owner if net < 0 else None,
                destination=after.owner if net > 0 else None,
            )
        )
    return movements
