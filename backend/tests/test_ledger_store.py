from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from backend.practice import models, schemas
from backend.practice.services.ledger_store import (
    ClientNotFoundError,
    LedgerEntryNotFoundError,
    LedgerStore,
    LedgerStoreError,
)


def test_add_returns_identifier_and_leaves_cache_untouched(db_session, seed_clients) -> None:
    ava = seed_clients["ava"]

    entry_id = LedgerStore.add(
        db_session,
        ava.id,
        {"type": "session", "amount": "100", "at": datetime(2025, 3, 4, 10, 0)},
    )

    stored = LedgerStore.get_entry(db_session, ava.id, entry_id)
    assert stored.entry_type == models.LedgerEntryType.SESSION
    assert stored.amount == Decimal("100.00")
    assert stored.state == models.PlannerSlotState.SCHEDULED.value

    db_session.refresh(ava)
    assert Decimal(ava.cached_meetings_total) == Decimal("0")


def test_add_without_amount_stores_zero(db_session, seed_clients) -> None:
    ava = seed_clients["ava"]

    entry_id = LedgerStore.add(
        db_session, ava.id, {"type": "payment", "at": datetime(2025, 3, 4, 10, 0)}
    )

    assert LedgerStore.get_entry(db_session, ava.id, entry_id).amount == Decimal("0")


def test_add_rejects_malformed_amount(db_session, seed_clients) -> None:
    with pytest.raises(ValueError):
        LedgerStore.add(
            db_session,
            seed_clients["ava"].id,
            {"type": "payment", "amount": "NaN", "at": datetime(2025, 3, 4)},
        )

    assert db_session.query(models.ClientLedgerEntry).count() == 0


def test_add_for_unknown_client_raises(db_session) -> None:
    with pytest.raises(ClientNotFoundError):
        LedgerStore.add(
            db_session, "missing", {"type": "session", "amount": "1", "at": datetime(2025, 1, 1)}
        )


def test_add_drops_timezone_offsets(db_session, seed_clients) -> None:
    ava = seed_clients["ava"]
    aware = datetime(2025, 3, 4, 18, 30, tzinfo=timezone(timedelta(hours=3, minutes=30)))

    entry_id = LedgerStore.add(
        db_session, ava.id, {"type": "session", "amount": "100", "at": aware}
    )

    assert LedgerStore.get_entry(db_session, ava.id, entry_id).at == datetime(2025, 3, 4, 18, 30)


def test_list_entries_orders_by_time_descending(db_session, seed_clients, make_entry) -> None:
    ava = seed_clients["ava"]
    for day in (3, 1, 2):
        make_entry(ava.id, models.LedgerEntryType.SESSION, "100", datetime(2025, 3, day, 9))
    make_entry(seed_clients["ben"].id, models.LedgerEntryType.SESSION, "80", datetime(2025, 3, 5))

    entries = LedgerStore.list_entries(db_session, ava.id)

    assert [entry.at.day for entry in entries] == [3, 2, 1]


def test_update_changes_only_supplied_fields(db_session, seed_clients, make_entry) -> None:
    ava = seed_clients["ava"]
    entry = make_entry(
        ava.id, models.LedgerEntryType.SESSION, "100", datetime(2025, 3, 4, 9), note="intake"
    )

    updated = LedgerStore.update(
        db_session, ava.id, entry.id, schemas.LedgerEntryUpdate(amount=Decimal("120"))
    )

    assert updated.amount == Decimal("120.00")
    assert updated.note == "intake"
    assert updated.at == datetime(2025, 3, 4, 9)


@pytest.mark.parametrize("field", ["type", "entry_type"])
def test_update_rejects_type_change(db_session, seed_clients, make_entry, field) -> None:
    ava = seed_clients["ava"]
    entry = make_entry(ava.id, models.LedgerEntryType.SESSION, "100", datetime(2025, 3, 4))

    with pytest.raises(ValueError):
        LedgerStore.update(db_session, ava.id, entry.id, {field: "payment"})


def test_update_of_entry_owned_by_another_client_fails(db_session, seed_clients, make_entry) -> None:
    entry = make_entry(
        seed_clients["ben"].id, models.LedgerEntryType.PAYMENT, "80", datetime(2025, 3, 4)
    )

    with pytest.raises(LedgerEntryNotFoundError):
        LedgerStore.update(db_session, seed_clients["ava"].id, entry.id, {"note": "moved"})


def test_delete_returns_removed_entry(db_session, seed_clients, make_entry) -> None:
    ava = seed_clients["ava"]
    entry = make_entry(ava.id, models.LedgerEntryType.PAYMENT, "60", datetime(2025, 3, 4))

    removed = LedgerStore.delete(db_session, ava.id, entry.id)

    assert removed.amount == Decimal("60.00")
    assert removed.entry_type == models.LedgerEntryType.PAYMENT
    assert LedgerStore.list_entries(db_session, ava.id) == []


def test_database_failure_rolls_back_and_raises(db_session, seed_clients, monkeypatch) -> None:
    ava = seed_clients["ava"]

    def failing_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(LedgerStoreError):
        LedgerStore.add(
            db_session, ava.id, {"type": "session", "amount": "100", "at": datetime(2025, 3, 4)}
        )

    monkeypatch.undo()
    assert db_session.query(models.ClientLedgerEntry).count() == 0


def test_update_rejects_clearing_the_amount(db_session, seed_clients, make_entry) -> None:
    ava = seed_clients["ava"]
    entry = make_entry(ava.id, models.LedgerEntryType.SESSION, "100", datetime(2025, 3, 4))

    with pytest.raises(ValueError):
        schemas.LedgerEntryUpdate(amount=None)
    with pytest.raises(ValueError):
        LedgerStore.update(db_session, ava.id, entry.id, {"amount": None})

    db_session.rollback()
    assert LedgerStore.get_entry(db_session, ava.id, entry.id).amount == Decimal("100.00")


def test_read_failure_raises_store_error(db_session, seed_clients) -> None:
    db_session.execute(text("DROP TABLE client_ledger_entries"))
    db_session.commit()

    with pytest.raises(LedgerStoreError):
        LedgerStore.list_entries(db_session, seed_clients["ava"].id)
    with pytest.raises(LedgerStoreError):
        LedgerStore.get_entry(db_session, seed_clients["ava"].id, seed_clients["ben"].id)


def test_malformed_identifiers_are_not_found_without_a_query(db_session, seed_clients, monkeypatch) -> None:
    def unexpected_query(*_args, **_kwargs):
        raise AssertionError("malformed identifiers must not reach the database")

    monkeypatch.setattr(db_session, "get", unexpected_query)
    monkeypatch.setattr(db_session, "query", unexpected_query)

    with pytest.raises(ClientNotFoundError):
        LedgerStore.ensure_client(db_session, "file-12")
    with pytest.raises(LedgerEntryNotFoundError):
        LedgerStore.get_entry(db_session, seed_clients["ava"].id, "42")
    assert LedgerStore.list_entries(db_session, "file-12") == []
