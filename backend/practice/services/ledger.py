"""Ledger mutations paired with the cached balance update they require."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from .. import schemas
from .balance import BalanceSnapshot
from .balance_cache import BalanceCache, CacheDelta
from .ledger_store import EntryFields, LedgerStore, LedgerStoreError, UpdateFields
from .observability import MetricOutcome, ObservabilityService

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RecordedEntry:
    """Identifier of a new entry and the balance after storing it."""

    entry_id: str
    balance: BalanceSnapshot


class LedgerService:
    """Write flows used by the client detail page and the planner.

    The detail page stores a change and refreshes the cache from the whole
    ledger; the planner deletes an entry and subtracts its known amount from
    the cache. In both cases the ledger change and the cache update share one
    transaction.
    """

    @classmethod
    def record(cls, db: Session, client_id: str, entry: EntryFields) -> RecordedEntry:
        def operation() -> RecordedEntry:
            entry_id = LedgerStore.add(db, client_id, entry, commit=False)
            snapshot = BalanceCache.recompute_and_cache(db, client_id)
            return RecordedEntry(entry_id=entry_id, balance=snapshot)

        return cls._run(db, "ledger.entry_recorded", client_id, operation)

    @classmethod
    def edit(
        cls, db: Session, client_id: str, entry_id: str, fields: UpdateFields
    ) -> BalanceSnapshot:
        def operation() -> BalanceSnapshot:
            LedgerStore.update(db, client_id, entry_id, fields, commit=False)
            return BalanceCache.recompute_and_cache(db, client_id)

        return cls._run(db, "ledger.entry_edited", client_id, operation)

    @classmethod
    def delete(cls, db: Session, client_id: str, entry_id: str) -> BalanceSnapshot:
        def operation() -> BalanceSnapshot:
            LedgerStore.delete(db, client_id, entry_id, commit=False)
            return BalanceCache.recompute_and_cache(db, client_id)

        return cls._run(db, "ledger.entry_deleted", client_id, operation)

    @classmethod
    def remove_with_adjustment(
        cls, db: Session, client_id: str, entry_id: str
    ) -> schemas.LedgerEntryRead:
        """Delete an entry and subtract its amount from the cached totals."""

        def operation() -> schemas.LedgerEntryRead:
            removed = LedgerStore.delete(db, client_id, entry_id, commit=False)
            delta = CacheDelta.for_entry(removed.entry_type, removed.amount).negated()
            BalanceCache.adjust_cache(db, client_id, delta)
            return removed

        return cls._run(db, "ledger.entry_removed", client_id, operation)

    @staticmethod
    def _run(
        db: Session, event_type: str, client_id: str, operation: Callable[[], T]
    ) -> T:
        start = perf_counter()
        tags = {"client_id": str(client_id)}
        try:
            result = operation()
        except (LookupError, ValueError) as exc:
            db.rollback()
            ObservabilityService.record_failure(
                db,
                event_type,
                outcome=MetricOutcome.REJECTED,
                reason=str(exc),
                tags=tags,
                duration_ms=(perf_counter() - start) * 1000,
            )
            raise
        except LedgerStoreError as exc:
            ObservabilityService.record_failure(
                db,
                event_type,
                outcome=MetricOutcome.ERROR,
                reason=str(exc),
                tags=tags,
                duration_ms=(perf_counter() - start) * 1000,
            )
            raise

        ObservabilityService.record_event(
            db,
            event_type,
            MetricOutcome.SUCCESS,
            duration_ms=(perf_counter() - start) * 1000,
            tags=tags,
        )
        LOGGER.info("%s for client %s", event_type, client_id)
        return result
