"""Read-side queries over every client's ledger for calendar and planner views."""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Collection, Optional

from sqlalchemy.orm import Session

from .. import models
from ..database import read_int_env
from .balance import ZERO, to_decimal

SUGGESTION_LOOKBACK_ENV = "SUGGESTION_LOOKBACK_DAYS"
DEFAULT_LOOKBACK_DAYS = 28
MULTIPLE_CURRENCIES = "Multiple"


@dataclass
class DayLedgerEntry:
    id: str
    client_id: str
    entry_type: models.LedgerEntryType
    at: datetime
    time: str
    amount: Decimal
    note: str
    state: Optional[str]


@dataclass
class ScheduleSuggestion:
    client: models.Client
    count: int
    last_date: datetime


@dataclass
class DaySummary:
    day: date
    entry_type: models.LedgerEntryType
    count: int
    total: Optional[Decimal]
    currency: Optional[str]


def normalize_slot_state(value: object) -> models.PlannerSlotState:
    """Map free-text session state onto the three planner states."""

    raw = str(value or "").lower()
    if "cancel" in raw:
        return models.PlannerSlotState.CANCELED
    if "hold" in raw or "held" in raw:
        return models.PlannerSlotState.HELD
    if "done" in raw or "complete" in raw:
        return models.PlannerSlotState.HELD
    return models.PlannerSlotState.SCHEDULED


def day_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def _start_of_day(value: date) -> datetime:
    return datetime.combine(value if not isinstance(value, datetime) else value.date(), time.min)


def default_lookback_days() -> int:
    return read_int_env(SUGGESTION_LOOKBACK_ENV, DEFAULT_LOOKBACK_DAYS, minimum=1)


class DayAggregationQueries:
    """Cross-client reads. Nothing here touches cached balances.

    ``known_client_ids`` is the caller's current client list; when supplied,
    entries of any other client are dropped without error.
    """

    @staticmethod
    def _entries_between(
        db: Session,
        start: datetime,
        end: datetime,
        entry_type: Optional[models.LedgerEntryType],
        known_client_ids: Optional[Collection[str]],
    ) -> list[models.ClientLedgerEntry]:
        query = db.query(models.ClientLedgerEntry).filter(
            models.ClientLedgerEntry.at >= start,
            models.ClientLedgerEntry.at < end,
        )
        if entry_type is not None:
            query = query.filter(models.ClientLedgerEntry.entry_type == entry_type)
        entries = query.all()
        if known_client_ids is None:
            return entries
        known = {str(client_id) for client_id in known_client_ids}
        return [entry for entry in entries if str(entry.client_id) in known]

    @classmethod
    def entries_for_day(
        cls,
        db: Session,
        day: date,
        entry_type: models.LedgerEntryType,
        *,
        known_client_ids: Optional[Collection[str]] = None,
    ) -> list[DayLedgerEntry]:
        start = _start_of_day(day)
        entries = cls._entries_between(
            db, start, start + timedelta(days=1), entry_type, known_client_ids
        )
        items = [
            DayLedgerEntry(
                id=str(entry.id),
                client_id=str(entry.client_id),
                entry_type=entry.entry_type,
                at=entry.at,
                time=entry.at.strftime("%H:%M"),
                amount=to_decimal(entry.amount),
                note=entry.note or "",
                state=(
                    normalize_slot_state(entry.state).value
                    if entry.entry_type == models.LedgerEntryType.SESSION
                    else None
                ),
            )
            for entry in entries
        ]
        items.sort(key=lambda item: (item.time, item.client_id))
        return items

    @classmethod
    def days_with_entries_in_month(
        cls,
        db: Session,
        month_date: date,
        entry_type: models.LedgerEntryType,
        *,
        known_client_ids: Optional[Collection[str]] = None,
    ) -> set[str]:
        month_start = datetime(month_date.year, month_date.month, 1)
        _, last_day = monthrange(month_date.year, month_date.month)
        month_end = month_start + timedelta(days=last_day)
        entries = cls._entries_between(
            db, month_start, month_end, entry_type, known_client_ids
        )
        return {day_key(entry.at) for entry in entries}

    @classmethod
    def suggest_clients_for_weekday(
        cls,
        db: Session,
        selected_date: date,
        lookback_days: Optional[int] = None,
        *,
        known_client_ids: Optional[Collection[str]] = None,
    ) -> list[ScheduleSuggestion]:
        """Rank clients by sessions held on the selected weekday recently.

        Ties are broken by the most recent matching session.
        """

        if lookback_days is None:
            lookback_days = default_lookback_days()
        if lookback_days < 1:
            raise ValueError("lookback_days must be at least 1")

        day_start = _start_of_day(selected_date)
        window_start = day_start - timedelta(days=lookback_days)
        window_end = day_start + timedelta(days=1)
        weekday = day_start.weekday()

        entries = cls._entries_between(
            db,
            window_start,
            window_end,
            models.LedgerEntryType.SESSION,
            known_client_ids,
        )

        stats: dict[str, tuple[int, datetime]] = {}
        for entry in entries:
            if entry.at.weekday() != weekday:
                continue
            client_id = str(entry.client_id)
            count, last_date = stats.get(client_id, (0, entry.at))
            stats[client_id] = (count + 1, max(last_date, entry.at))

        if not stats:
            return []

        clients = {
            str(client.id): client
            for client in db.query(models.Client)
            .filter(models.Client.id.in_(list(stats)))
            .all()
        }
        suggestions = [
            ScheduleSuggestion(client=clients[client_id], count=count, last_date=last_date)
            for client_id, (count, last_date) in stats.items()
            if client_id in clients
        ]
        suggestions.sort(key=lambda item: (-item.count, -item.last_date.timestamp()))
        return suggestions

    @classmethod
    def day_summary(
        cls,
        db: Session,
        day: date,
        entry_type: models.LedgerEntryType,
        *,
        known_client_ids: Optional[Collection[str]] = None,
    ) -> DaySummary:
        """Count and total of a day's entries, leaving out canceled sessions."""

        entries = [
            entry
            for entry in cls.entries_for_day(
                db, day, entry_type, known_client_ids=known_client_ids
            )
            if entry.state != models.PlannerSlotState.CANCELED.value
        ]
        client_ids = {entry.client_id for entry in entries}
        currencies: set[str] = set()
        if client_ids:
            currencies = {
                currency
                for (currency,) in db.query(models.Client.currency)
                .filter(models.Client.id.in_(list(client_ids)))
                .all()
                if currency
            }

        summary_day = day.date() if isinstance(day, datetime) else day
        if len(currencies) > 1:
            return DaySummary(
                day=summary_day,
                entry_type=entry_type,
                count=len(entries),
                total=None,
                currency=MULTIPLE_CURRENCIES,
            )
        return DaySummary(
            day=summary_day,
            entry_type=entry_type,
            count=len(entries),
            total=sum((entry.amount for entry in entries), ZERO),
            currency=next(iter(currencies), None),
        )
