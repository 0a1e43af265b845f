"""Atomic commit of several new ledger entries with one cache delta per client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from time import perf_counter
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import schemas
from ..database import read_int_env
from ..db_types import is_identifier
from .balance_cache import BalanceCache, CacheDelta
from .ledger_feed import mark_ledger_touched
from .ledger_store import ClientNotFoundError, LedgerStore, LedgerStoreError
from .observability import MetricOutcome, ObservabilityService

LOGGER = logging.getLogger(__name__)

BATCH_MAX_WRITES_ENV = "LEDGER_BATCH_MAX_WRITES"
DEFAULT_BATCH_MAX_WRITES = 500


class BatchTooLargeError(ValueError):
    """Raised before writing when a batch exceeds the atomic write limit."""


@dataclass
class ClientDelta:
    client_id: str
    meetings_delta: Decimal
    paid_delta: Decimal


@dataclass
class BatchResult:
    entry_ids: list[str] = field(default_factory=list)
    deltas: list[ClientDelta] = field(default_factory=list)


BatchItem = Union[schemas.BatchLedgerItem, tuple[str, Any], Mapping[str, Any]]


def max_batch_writes() -> int:
    return read_int_env(BATCH_MAX_WRITES_ENV, DEFAULT_BATCH_MAX_WRITES, minimum=1)


class BatchLedgerWriter:
    """Commits new entries across clients as a single transaction.

    Every entry is inserted and every affected client receives exactly one
    aggregated cache adjustment. Either all of it is committed or none of it
    is. This path only adds entries; it never edits or deletes.
    """

    @staticmethod
    def _split_item(item: BatchItem) -> tuple[str, schemas.LedgerEntryInput]:
        if isinstance(item, schemas.BatchLedgerItem):
            return item.client_id, schemas.LedgerEntryInput.model_validate(
                item.model_dump(exclude={"client_id"})
            )
        if isinstance(item, tuple):
            client_id, entry = item
        else:
            data = dict(item)
            client_id = data.pop("client_id", None)
            entry = data
        if not client_id:
            raise ValueError("Every batch item needs a client_id")
        if not isinstance(entry, schemas.LedgerEntryInput):
            entry = schemas.LedgerEntryInput.model_validate(entry)
        return str(client_id), entry

    @classmethod
    def group_deltas(
        cls, pairs: Sequence[tuple[str, schemas.LedgerEntryInput]]
    ) -> dict[str, CacheDelta]:
        """Sum amounts per client into meetings and paid deltas."""

        totals: dict[str, CacheDelta] = {}
        for client_id, entry in pairs:
            delta = CacheDelta.for_entry(
                entry.entry_type, LedgerStore.normalize_amount(entry.amount)
            )
            totals[client_id] = totals.get(client_id, CacheDelta()) + delta
        return totals

    @classmethod
    def add_entries(
        cls,
        db: Session,
        items: Iterable[BatchItem],
        *,
        max_writes: Optional[int] = None,
    ) -> BatchResult:
        start = perf_counter()
        pairs = [cls._split_item(item) for item in items]
        if not pairs:
            return BatchResult()

        totals = cls.group_deltas(pairs)
        limit = max_writes if max_writes is not None else max_batch_writes()
        write_count = len(pairs) + len(totals)
        tags: dict[str, object] = {
            "entries": len(pairs),
            "clients": len(totals),
        }
        if write_count > limit:
            ObservabilityService.record_failure(
                db,
                "ledger.batch_rejected",
                outcome=MetricOutcome.REJECTED,
                reason=f"{write_count} writes exceed the limit of {limit}",
                tags=tags,
            )
            raise BatchTooLargeError(
                f"Batch needs {write_count} writes but at most {limit} can be applied atomically."
            )

        entry_ids: list[str] = []
        try:
            unknown = [client_id for client_id in totals if not is_identifier(client_id)]
            if unknown:
                raise ClientNotFoundError(f"Client {unknown[0]} not found")
            for client_id, entry in pairs:
                record = LedgerStore.build_entry(client_id, entry)
                entry_ids.append(record.id)
                db.add(record)
            for client_id, delta in totals.items():
                BalanceCache.adjust_cache(db, client_id, delta, commit=False)
                mark_ledger_touched(db, client_id)
            db.commit()
        except ClientNotFoundError as exc:
            db.rollback()
            cls._record_failure(db, MetricOutcome.REJECTED, str(exc), tags, start)
            raise
        except (LedgerStoreError, SQLAlchemyError) as exc:
            db.rollback()
            cls._record_failure(db, MetricOutcome.ERROR, str(exc), tags, start)
            if isinstance(exc, LedgerStoreError):
                raise
            raise LedgerStoreError("Unable to save ledger entries at this time.") from exc

        ObservabilityService.record_event(
            db,
            "ledger.batch_committed",
            MetricOutcome.SUCCESS,
            duration_ms=(perf_counter() - start) * 1000,
            tags=tags,
        )
        LOGGER.info(
            "Committed %d ledger entries across %d clients", len(entry_ids), len(totals)
        )
        return BatchResult(
            entry_ids=entry_ids,
            deltas=[
                ClientDelta(
                    client_id=client_id,
                    meetings_delta=delta.meetings,
                    paid_delta=delta.paid,
                )
                for client_id, delta in totals.items()
            ],
        )

    @staticmethod
    def _record_failure(
        db: Session, outcome: str, reason: str, tags: dict[str, object], start: float
    ) -> None:
        ObservabilityService.record_failure(
            db,
            "ledger.batch_failed",
            outcome=outcome,
            reason=reason,
            tags=tags,
            duration_ms=(perf_counter() - start) * 1000,
        )
