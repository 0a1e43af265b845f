from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from backend.practice import models, schemas
from backend.practice.services.clients import ClientService, format_money
from backend.practice.services.ledger_store import ClientNotFoundError


def test_create_client_initialises_cache_from_starting_balance(db_session) -> None:
    created = ClientService.create_client(
        db_session,
        schemas.ClientCreate(
            file_number="12",
            first_name="Lena",
            last_name="Park",
            price_per_session=Decimal("90"),
            currency="USD",
            starting_balance=Decimal("45"),
        ),
    )

    assert Decimal(created.cached_meetings_total) == Decimal("0")
    assert Decimal(created.cached_paid_total) == Decimal("0")
    assert Decimal(created.cached_remain) == Decimal("45")


def test_starting_balance_edit_shifts_cached_remain(db_session, seed_clients) -> None:
    ben = seed_clients["ben"]
    ben.cached_meetings_total = Decimal("160")
    ben.cached_paid_total = Decimal("100")
    ben.cached_remain = Decimal("110")
    db_session.commit()

    updated = ClientService.update_client(
        db_session, ben, schemas.ClientUpdate(starting_balance=Decimal("20"), phone="555-9999")
    )

    assert Decimal(updated.cached_meetings_total) == Decimal("160")
    assert Decimal(updated.cached_paid_total) == Decimal("100")
    assert Decimal(updated.cached_remain) == Decimal("80")
    assert updated.phone == "555-9999"


def test_client_update_rejects_cached_fields() -> None:
    with pytest.raises(ValueError):
        schemas.ClientUpdate(cached_remain=Decimal("0"))


def test_list_clients_filters_by_balance_and_sorts(db_session, make_client) -> None:
    make_client(file_number="10", first_name="Owes", cached_remain=Decimal("50"))
    make_client(file_number="2", first_name="Even", cached_remain=Decimal("0"))
    make_client(file_number="3", first_name="Ahead", cached_remain=Decimal("-20"))
    make_client(file_number="A-7", first_name="Legacy", cached_remain=None)

    debt, total = ClientService.list_clients(db_session, balance=schemas.BalanceFilter.DEBT)
    assert total == 1
    assert [client.first_name for client in debt] == ["Owes"]

    settled, _ = ClientService.list_clients(db_session, balance=schemas.BalanceFilter.SETTLED)
    assert {client.first_name for client in settled} == {"Even", "Legacy"}

    by_file, _ = ClientService.list_clients(db_session)
    assert [client.file_number for client in by_file] == ["2", "3", "10", "A-7"]

    by_remain, _ = ClientService.list_clients(db_session, sort=schemas.ClientSort.REMAIN_DESC)
    assert by_remain[0].first_name == "Owes"
    assert by_remain[-1].first_name == "Ahead"


def test_list_clients_searches_profile_fields(db_session, seed_clients) -> None:
    items, total = ClientService.list_clients(db_session, search="okaf")
    assert total == 1
    assert items[0].id == seed_clients["ben"].id

    items, total = ClientService.list_clients(db_session, search="555-0102")
    assert total == 1


def test_build_report_lists_ledger_chronologically(db_session, seed_clients, make_entry) -> None:
    ben = seed_clients["ben"]
    make_entry(ben.id, models.LedgerEntryType.PAYMENT, "100", datetime(2025, 3, 11, 10), note="cash")
    make_entry(ben.id, models.LedgerEntryType.SESSION, "80", datetime(2025, 3, 4, 10))

    report = ClientService.build_report(db_session, ben.id, generated_on=date(2025, 3, 12))
    lines = report.splitlines()

    assert lines[0] == "Client Report"
    assert "Name: Ben Okafor" in lines
    assert "Remain: 30 USD (Debt)" in lines
    assert lines[-3] == "2) Tue | 2025-03-11 | Payment | 100 USD | cash"
    assert lines[-4] == "1) Tue | 2025-03-04 | Session | 80 USD | -"
    assert lines[-1] == "Generated: 2025-03-12"


def test_build_report_for_unknown_client(db_session) -> None:
    with pytest.raises(ClientNotFoundError):
        ClientService.build_report(db_session, "missing")


@pytest.mark.parametrize(
    ("amount", "currency", "expected"),
    [
        (Decimal("1234.5"), "USD", "1,234.5 USD"),
        (Decimal("80"), None, "80"),
        (Decimal("-12.345"), "EUR", "-12.35 EUR"),
        (None, "", "0"),
    ],
)
def test_format_money(amount, currency, expected) -> None:
    assert format_money(amount, currency) == expected
