"""Denormalized balance totals stored on the client record."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..db_types import is_identifier
from .balance import ZERO, BalanceSnapshot, compute_balance, to_decimal
from .ledger_store import ClientNotFoundError, LedgerStore, LedgerStoreError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheDelta:
    """Change to apply to a client's cached meetings and paid totals."""

    meetings: Decimal = ZERO
    paid: Decimal = ZERO

    @property
    def remain(self) -> Decimal:
        return self.meetings - self.paid

    def __add__(self, other: "CacheDelta") -> "CacheDelta":
        return CacheDelta(meetings=self.meetings + other.meetings, paid=self.paid + other.paid)

    @classmethod
    def for_entry(cls, entry_type: Any, amount: Any) -> "CacheDelta":
        """Delta introduced by adding one entry of ``entry_type``."""

        value = getattr(entry_type, "value", entry_type)
        if value == models.LedgerEntryType.SESSION.value:
            return cls(meetings=to_decimal(amount))
        if value == models.LedgerEntryType.PAYMENT.value:
            return cls(paid=to_decimal(amount))
        return cls()

    def negated(self) -> "CacheDelta":
        return CacheDelta(meetings=-self.meetings, paid=-self.paid)


class BalanceCache:
    """Keeps ``Client.cached_*`` in step with the ledger.

    ``recompute_and_cache`` is the authoritative refresh from the full
    ledger; ``adjust_cache`` is the fast path for callers that already know
    the exact change they are writing.
    """

    @staticmethod
    def recompute_and_cache(
        db: Session,
        client_id: str,
        starting_balance: Optional[Any] = None,
        *,
        commit: bool = True,
    ) -> BalanceSnapshot:
        client = LedgerStore.ensure_client(db, client_id)
        if starting_balance is None:
            starting_balance = client.starting_balance

        entries = LedgerStore.list_entries(db, client_id, ordered=False)
        snapshot = compute_balance(entries, starting_balance)

        client.cached_meetings_total = snapshot.meetings_total
        client.cached_paid_total = snapshot.paid_total
        client.cached_remain = snapshot.remain
        client.updated_at = func.now()
        db.add(client)
        BalanceCache._finish(db, client_id, commit=commit, action="recompute")
        LOGGER.debug(
            "Recomputed balance for client %s: meetings=%s paid=%s remain=%s",
            client_id,
            snapshot.meetings_total,
            snapshot.paid_total,
            snapshot.remain,
        )
        return snapshot

    @staticmethod
    def adjust_cache(
        db: Session,
        client_id: str,
        delta: CacheDelta,
        *,
        commit: bool = True,
    ) -> None:
        """Increment the cached totals in place without reading the ledger."""

        if not is_identifier(client_id):
            raise ClientNotFoundError(f"Client {client_id} not found")
        statement = (
            update(models.Client)
            .where(models.Client.id == str(client_id))
            .values(
                cached_meetings_total=func.coalesce(models.Client.cached_meetings_total, 0)
                + delta.meetings,
                cached_paid_total=func.coalesce(models.Client.cached_paid_total, 0)
                + delta.paid,
                cached_remain=func.coalesce(models.Client.cached_remain, 0) + delta.remain,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.execute(statement)
        except SQLAlchemyError as exc:
            db.rollback()
            raise LedgerStoreError("Unable to adjust cached totals at this time.") from exc

        if result.rowcount == 0:
            raise ClientNotFoundError(f"Client {client_id} not found")

        BalanceCache._expire_client(db, client_id)
        BalanceCache._finish(db, client_id, commit=commit, action="adjust")

    @staticmethod
    def _expire_client(db: Session, client_id: str) -> None:
        client = db.identity_map.get(db.identity_key(models.Client, str(client_id)))
        if client is not None:
            db.expire(client)

    @staticmethod
    def _finish(db: Session, client_id: str, *, commit: bool, action: str) -> None:
        try:
            db.flush()
            if commit:
                db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            LOGGER.warning("Balance cache %s failed for client %s: %s", action, client_id, exc)
            raise LedgerStoreError(f"Unable to {action} cached totals at this time.") from exc
