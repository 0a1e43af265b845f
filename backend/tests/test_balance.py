from __future__ import annotations

import itertools
from decimal import Decimal

import pytest

from backend.practice.schemas import BalanceStatus
from backend.practice.services.balance import (
    BalanceSnapshot,
    balance_status,
    compute_balance,
    to_decimal,
)


def _session(amount):
    return {"type": "session", "amount": amount}


def _payment(amount):
    return {"type": "payment", "amount": amount}


def test_new_client_balance_is_starting_balance() -> None:
    snapshot = compute_balance([], Decimal("0"))

    assert snapshot == BalanceSnapshot(Decimal("0"), Decimal("0"), Decimal("0"))
    assert snapshot.status == BalanceStatus.SETTLED


def test_sessions_then_full_payment_settle_the_client() -> None:
    entries = [_session("100"), _session("100"), _payment("200")]

    snapshot = compute_balance(entries, 0)

    assert snapshot.meetings_total == Decimal("200")
    assert snapshot.paid_total == Decimal("200")
    assert snapshot.remain == Decimal("0")
    assert snapshot.status == BalanceStatus.SETTLED


def test_overpayment_leaves_a_credit() -> None:
    snapshot = compute_balance([_session("100"), _payment("150")], Decimal("20"))

    assert snapshot.remain == Decimal("-30")
    assert snapshot.status == BalanceStatus.CREDIT


def test_starting_debt_carries_into_remain() -> None:
    snapshot = compute_balance([_session("80")], Decimal("50"))

    assert snapshot.remain == Decimal("130")
    assert snapshot.status == BalanceStatus.OWES


def test_result_does_not_depend_on_entry_order() -> None:
    entries = [_session("100.10"), _payment("40.05"), _session("0.30"), _payment("10")]
    expected = compute_balance(entries, Decimal("12.50"))

    for permutation in itertools.permutations(entries):
        assert compute_balance(permutation, Decimal("12.50")) == expected


def test_decimal_sums_are_exact() -> None:
    snapshot = compute_balance([_session(0.1), _session(0.2)], 0)

    assert snapshot.meetings_total == Decimal("0.3")


def test_unknown_types_and_missing_amounts_are_ignored() -> None:
    entries = [
        {"type": "refund", "amount": "999"},
        {"type": "session"},
        {"entry_type": "payment", "amount": None},
        _session("50"),
    ]

    snapshot = compute_balance(entries, None)

    assert snapshot == BalanceSnapshot(Decimal("50"), Decimal("0"), Decimal("50"))


def test_canceled_sessions_still_count() -> None:
    entries = [{"type": "session", "amount": "100", "state": "canceled"}]

    assert compute_balance(entries, 0).meetings_total == Decimal("100")


@pytest.mark.parametrize("value", ["abc", float("nan"), float("inf"), "Infinity", True, object()])
def test_malformed_amounts_are_rejected(value) -> None:
    with pytest.raises(ValueError):
        to_decimal(value)


def test_balance_status_follows_sign_of_remain() -> None:
    assert balance_status("12.5") == BalanceStatus.OWES
    assert balance_status(0) == BalanceStatus.SETTLED
    assert balance_status(Decimal("-0.01")) == BalanceStatus.CREDIT
