"""Pure balance calculation over a client's ledger entries."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from ..models.ledger_entry import LedgerEntryType
from ..schemas.client import BalanceStatus

ZERO = Decimal("0")


@dataclass(frozen=True)
class BalanceSnapshot:
    """Meetings total, paid total and remaining balance of a client.

    ``remain`` is positive when the client owes money, zero when settled and
    negative when the client holds a credit.
    """

    meetings_total: Decimal
    paid_total: Decimal
    remain: Decimal

    @property
    def status(self) -> BalanceStatus:
        return balance_status(self.remain)


def to_decimal(value: Any) -> Decimal:
    """Convert a stored or submitted numeric value to ``Decimal``.

    Missing values count as zero. Anything that is not a finite number is
    rejected with ``ValueError``.
    """

    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("Amount must be a finite number")
        result = Decimal(str(value))
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip() or "0")
        except InvalidOperation as exc:
            raise ValueError(f"Amount {value!r} is not a number") from exc
    else:
        raise ValueError(f"Amount {value!r} is not a number")
    if not result.is_finite():
        raise ValueError("Amount must be a finite number")
    return result


def _entry_field(entry: Any, name: str) -> Any:
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def _entry_type_value(entry: Any) -> str | None:
    raw = _entry_field(entry, "entry_type")
    if raw is None:
        raw = _entry_field(entry, "type")
    if isinstance(raw, LedgerEntryType):
        return raw.value
    return raw


def compute_balance(entries: Iterable[Any], starting_balance: Any) -> BalanceSnapshot:
    """Sum sessions and payments into a :class:`BalanceSnapshot`.

    Entries may be ORM rows, schema objects or plain mappings exposing
    ``entry_type`` (or ``type``) and ``amount``. Entries of any other type
    are ignored. The session ``state`` label plays no part in the sums, so a
    canceled session still counts towards the meetings total.
    """

    meetings_total = ZERO
    paid_total = ZERO

    for entry in entries:
        entry_type = _entry_type_value(entry)
        if entry_type == LedgerEntryType.SESSION.value:
            meetings_total += to_decimal(_entry_field(entry, "amount"))
        elif entry_type == LedgerEntryType.PAYMENT.value:
            paid_total += to_decimal(_entry_field(entry, "amount"))

    remain = to_decimal(starting_balance) + meetings_total - paid_total
    return BalanceSnapshot(
        meetings_total=meetings_total,
        paid_total=paid_total,
        remain=remain,
    )


def balance_status(remain: Any) -> BalanceStatus:
    return BalanceStatus.from_remain(to_decimal(remain))
