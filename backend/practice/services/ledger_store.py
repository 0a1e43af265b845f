"""Persistence of individual ledger entries scoped to a client."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..db_types import is_identifier, new_identifier
from .balance import to_decimal
from .ledger_feed import mark_ledger_touched

LOGGER = logging.getLogger(__name__)

CENTS = Decimal("0.01")

EDITABLE_FIELDS = frozenset({"amount", "at", "note", "state"})
IMMUTABLE_FIELDS = frozenset({"type", "entry_type", "id", "client_id", "created_at"})


class LedgerStoreError(RuntimeError):
    """Raised when the database cannot complete a ledger operation."""


class ClientNotFoundError(LookupError):
    """Raised when a client identifier does not exist."""


class LedgerEntryNotFoundError(LookupError):
    """Raised when a ledger entry does not exist for the given client."""


EntryFields = Union[schemas.LedgerEntryInput, Mapping[str, Any]]
UpdateFields = Union[schemas.LedgerEntryUpdate, Mapping[str, Any]]


class LedgerStore:
    """CRUD over a client's ledger entries.

    Mutations commit by default. With ``commit=False`` they only flush, which
    lets the caller pair them with a cache update in the same transaction.
    The cached totals on the client are never touched here.
    """

    @staticmethod
    def normalize_amount(value: Any) -> Decimal:
        return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)

    @classmethod
    def ensure_client(cls, db: Session, client_id: str) -> models.Client:
        if not is_identifier(client_id):
            raise ClientNotFoundError(f"Client {client_id} not found")
        try:
            client = db.get(models.Client, str(client_id))
        except SQLAlchemyError as exc:
            raise cls._read_failed(db, "load client", exc) from exc
        if client is None:
            raise ClientNotFoundError(f"Client {client_id} not found")
        return client

    @classmethod
    def list_entries(
        cls, db: Session, client_id: str, *, ordered: bool = True
    ) -> list[models.ClientLedgerEntry]:
        if not is_identifier(client_id):
            return []
        query = db.query(models.ClientLedgerEntry).filter(
            models.ClientLedgerEntry.client_id == str(client_id)
        )
        if ordered:
            query = query.order_by(
                models.ClientLedgerEntry.at.desc(),
                models.ClientLedgerEntry.created_at.desc(),
            )
        try:
            return query.all()
        except SQLAlchemyError as exc:
            raise cls._read_failed(db, "load ledger entries", exc) from exc

    @classmethod
    def get_entry(cls, db: Session, client_id: str, entry_id: str) -> models.ClientLedgerEntry:
        entry = None
        if is_identifier(client_id) and is_identifier(entry_id):
            try:
                entry = (
                    db.query(models.ClientLedgerEntry)
                    .filter(
                        models.ClientLedgerEntry.id == str(entry_id),
                        models.ClientLedgerEntry.client_id == str(client_id),
                    )
                    .first()
                )
            except SQLAlchemyError as exc:
                raise cls._read_failed(db, "load ledger entry", exc) from exc
        if entry is None:
            raise LedgerEntryNotFoundError(
                f"Ledger entry {entry_id} not found for client {client_id}"
            )
        return entry

    @classmethod
    def build_entry(
        cls, client_id: str, entry: EntryFields
    ) -> models.ClientLedgerEntry:
        """Create an unsaved ledger row from validated input."""

        data = (
            entry
            if isinstance(entry, schemas.LedgerEntryInput)
            else schemas.LedgerEntryInput.model_validate(entry)
        )
        state = data.state or ""
        if data.entry_type == models.LedgerEntryType.SESSION and not state:
            state = models.PlannerSlotState.SCHEDULED.value
        return models.ClientLedgerEntry(
            id=new_identifier(),
            client_id=str(client_id),
            entry_type=data.entry_type,
            amount=cls.normalize_amount(data.amount),
            at=data.at,
            note=data.note or "",
            state=state,
        )

    @classmethod
    def add(
        cls,
        db: Session,
        client_id: str,
        entry: EntryFields,
        *,
        commit: bool = True,
    ) -> str:
        """Store a new entry for ``client_id`` and return its identifier."""

        cls.ensure_client(db, client_id)
        record = cls.build_entry(client_id, entry)
        entry_id, entry_type = record.id, record.entry_type
        db.add(record)
        cls._finish(db, client_id, commit=commit, action="add")
        LOGGER.debug("Added %s entry %s for client %s", entry_type.value, entry_id, client_id)
        return entry_id

    @classmethod
    def update(
        cls,
        db: Session,
        client_id: str,
        entry_id: str,
        fields: UpdateFields,
        *,
        commit: bool = True,
    ) -> models.ClientLedgerEntry:
        """Apply a partial edit. Only supplied fields change."""

        changes = cls._collect_changes(fields)
        record = cls.get_entry(db, client_id, entry_id)

        for name, value in changes.items():
            if name == "amount":
                if value is None:
                    raise ValueError("Ledger entry amount cannot be cleared")
                record.amount = cls.normalize_amount(value)
            elif name == "at":
                record.at = cls._normalize_at(value)
            else:
                setattr(record, name, "" if value is None else str(value))

        db.add(record)
        cls._finish(db, client_id, commit=commit, action="update")
        return record

    @classmethod
    def delete(
        cls,
        db: Session,
        client_id: str,
        entry_id: str,
        *,
        commit: bool = True,
    ) -> schemas.LedgerEntryRead:
        """Hard-delete an entry and return what it contained."""

        record = cls.get_entry(db, client_id, entry_id)
        removed = schemas.LedgerEntryRead.model_validate(record)
        db.delete(record)
        cls._finish(db, client_id, commit=commit, action="delete")
        return removed

    @staticmethod
    def _collect_changes(fields: UpdateFields) -> dict[str, Any]:
        if isinstance(fields, schemas.LedgerEntryUpdate):
            return fields.model_dump(exclude_unset=True)

        changes = dict(fields)
        locked = IMMUTABLE_FIELDS.intersection(changes)
        if locked:
            raise ValueError(
                f"Ledger entry fields cannot be changed: {', '.join(sorted(locked))}"
            )
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown ledger entry fields: {', '.join(sorted(unknown))}")
        return changes

    @staticmethod
    def _normalize_at(value: Any) -> datetime:
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if not isinstance(value, datetime):
            raise ValueError("Ledger entry time must be a datetime")
        if value.tzinfo is not None:
            value = value.replace(tzinfo=None)
        return value

    @staticmethod
    def _finish(db: Session, client_id: str, *, commit: bool, action: str) -> None:
        try:
            db.flush()
            mark_ledger_touched(db, client_id)
            if commit:
                db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            LOGGER.warning("Ledger %s failed for client %s: %s", action, client_id, exc)
            raise LedgerStoreError(f"Unable to {action} ledger entry at this time.") from exc

    @staticmethod
    def _read_failed(db: Session, action: str, exc: SQLAlchemyError) -> LedgerStoreError:
        db.rollback()
        LOGGER.warning("Unable to %s: %s", action, exc)
        return LedgerStoreError(f"Unable to {action} at this time.")
