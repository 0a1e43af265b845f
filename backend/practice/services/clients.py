"""Business logic related to client records."""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..db_types import is_identifier
from .balance import ZERO, BalanceSnapshot, compute_balance, to_decimal
from .ledger_store import ClientNotFoundError, LedgerStore, LedgerStoreError

LOGGER = logging.getLogger(__name__)

STATUS_LABELS = {
    schemas.BalanceStatus.OWES: "Debt",
    schemas.BalanceStatus.SETTLED: "Settled",
    schemas.BalanceStatus.CREDIT: "Credit",
}


def _file_sort_key(client: models.Client) -> tuple:
    raw = (client.file_number or "").strip()
    try:
        number = Decimal(raw)
    except InvalidOperation:
        return (1, ZERO, raw.lower())
    if not number.is_finite():
        return (1, ZERO, raw.lower())
    return (0, number, "")


def format_money(amount: object, currency: Optional[str] = None) -> str:
    value = to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    formatted = f"{value:,.2f}"
    if formatted.endswith(".00"):
        formatted = formatted[:-3]
    elif formatted.endswith("0"):
        formatted = formatted[:-1]
    return f"{formatted} {currency}" if currency else formatted


class ClientService:
    """Encapsulates CRUD operations for clients."""

    @staticmethod
    def list_clients(
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        search: Optional[str] = None,
        balance: schemas.BalanceFilter = schemas.BalanceFilter.ALL,
        sort: schemas.ClientSort = schemas.ClientSort.FILE,
    ) -> Tuple[Iterable[models.Client], int]:
        query = db.query(models.Client)

        if search and search.strip():
            normalized = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(models.Client.file_number).like(normalized),
                    func.lower(models.Client.first_name).like(normalized),
                    func.lower(models.Client.last_name).like(normalized),
                    func.lower(models.Client.phone).like(normalized),
                    func.lower(models.Client.email).like(normalized),
                )
            )

        remain = func.coalesce(models.Client.cached_remain, 0)
        if balance == schemas.BalanceFilter.DEBT:
            query = query.filter(remain > 0)
        elif balance == schemas.BalanceFilter.SETTLED:
            query = query.filter(remain == 0)
        elif balance == schemas.BalanceFilter.CREDIT:
            query = query.filter(remain < 0)

        total = query.count()
        skip = max(skip, 0)
        limit = max(limit, 1)

        if sort == schemas.ClientSort.FILE:
            # File numbers are free text; numeric ones sort by value first.
            ordered = sorted(query.all(), key=_file_sort_key)
            return ordered[skip : skip + limit], total

        order_by = {
            schemas.ClientSort.REMAIN_DESC: remain.desc(),
            schemas.ClientSort.REMAIN_ASC: remain.asc(),
            schemas.ClientSort.PRICE_DESC: models.Client.price_per_session.desc(),
            schemas.ClientSort.PRICE_ASC: models.Client.price_per_session.asc(),
        }[sort]
        items = (
            query.order_by(order_by, models.Client.last_name, models.Client.first_name)
            .offset(skip)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def get_client(db: Session, client_id: str) -> Optional[models.Client]:
        if not is_identifier(client_id):
            return None
        return db.get(models.Client, str(client_id))

    @staticmethod
    def create_client(db: Session, data: schemas.ClientCreate) -> models.Client:
        payload = data.model_dump()
        starting_balance = to_decimal(payload.get("starting_balance"))
        client = models.Client(
            **payload,
            cached_meetings_total=ZERO,
            cached_paid_total=ZERO,
            cached_remain=starting_balance,
        )
        db.add(client)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise LedgerStoreError("Unable to create the client at this time.") from exc
        db.refresh(client)
        LOGGER.info("Created client %s (file %s)", client.id, client.file_number or "-")
        return client

    @staticmethod
    def update_client(
        db: Session, client: models.Client, data: schemas.ClientUpdate
    ) -> models.Client:
        """Apply a profile edit.

        Cached meeting and paid totals are left alone. A new starting balance
        moves ``cached_remain`` by the same difference.
        """

        update_data = data.model_dump(exclude_unset=True, exclude_none=True)

        if "starting_balance" in update_data:
            previous = to_decimal(client.starting_balance)
            difference = to_decimal(update_data["starting_balance"]) - previous
            if difference:
                client.cached_remain = client.cached_remain_value + difference

        for key, value in update_data.items():
            setattr(client, key, value)

        db.add(client)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise LedgerStoreError("Unable to update the client at this time.") from exc
        db.refresh(client)
        return client

    @staticmethod
    def build_report(
        db: Session,
        client_id: str,
        *,
        generated_on: Optional[date] = None,
    ) -> str:
        """Plain-text statement of a client's profile, totals and ledger."""

        client = ClientService.get_client(db, client_id)
        if client is None:
            raise ClientNotFoundError(f"Client {client_id} not found")

        entries = LedgerStore.list_entries(db, client.id)
        totals: BalanceSnapshot = compute_balance(entries, client.starting_balance)
        currency = client.currency or None
        status_label = STATUS_LABELS[totals.status]

        lines = [
            "Client Report",
            f"Name: {client.full_name}",
            f"File: {client.file_number or '-'}",
            f"Phone: {client.phone or '-'}",
            f"Email: {client.email or '-'}",
            f"Price Per Session: {format_money(client.price_per_session, currency)}",
            f"Starting Balance: {format_money(client.starting_balance, currency)}",
            f"Meetings Total: {format_money(totals.meetings_total, currency)}",
            f"Paid Total: {format_money(totals.paid_total, currency)}",
            f"Remain: {format_money(totals.remain, currency)} ({status_label})",
            "",
            "Ledger",
        ]

        chronological = sorted(entries, key=lambda entry: entry.at)
        if not chronological:
            lines.append("No ledger entries.")
        for index, entry in enumerate(chronological, start=1):
            type_label = (
                "Session" if entry.entry_type == models.LedgerEntryType.SESSION else "Payment"
            )
            note = (entry.note or "").strip() or "-"
            lines.append(
                f"{index}) {entry.at.strftime('%a')} | {entry.at.date().isoformat()} | "
                f"{type_label} | {format_money(entry.amount, currency)} | {note}"
            )

        lines.append("")
        lines.append(f"Generated: {(generated_on or date.today()).isoformat()}")
        return "\n".join(lines)
