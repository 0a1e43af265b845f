from __future__ import annotations

from datetime import datetime

from backend.practice import models
from backend.practice.services.batch_ledger import BatchLedgerWriter
from backend.practice.services.ledger_feed import LedgerFeed, ledger_feed
from backend.practice.services.ledger_store import LedgerStore


def _session_entry(at: datetime) -> dict:
    return {"type": "session", "amount": "100", "at": at}


def test_subscribe_delivers_snapshot_then_changes(engine, db_session, seed_clients, make_entry) -> None:
    ava = seed_clients["ava"]
    make_entry(ava.id, models.LedgerEntryType.SESSION, "100", datetime(2025, 3, 4, 9))
    snapshots: list[list] = []

    with ledger_feed.subscription(engine, ava.id, snapshots.append):
        assert len(snapshots) == 1
        assert len(snapshots[0]) == 1

        LedgerStore.add(db_session, ava.id, _session_entry(datetime(2025, 3, 11, 9)))

        assert len(snapshots) == 2
        assert [entry.at.day for entry in snapshots[1]] == [11, 4]

    LedgerStore.add(db_session, ava.id, _session_entry(datetime(2025, 3, 18, 9)))
    assert len(snapshots) == 2


def test_per_client_subscription_ignores_other_clients(engine, db_session, seed_clients) -> None:
    snapshots: list[list] = []
    unsubscribe = ledger_feed.subscribe(engine, seed_clients["ava"].id, snapshots.append)
    try:
        LedgerStore.add(db_session, seed_clients["ben"].id, _session_entry(datetime(2025, 3, 4)))
    finally:
        unsubscribe()

    assert snapshots == [[]]


def test_subscribe_all_sees_every_client(engine, db_session, seed_clients) -> None:
    ava, ben = seed_clients["ava"], seed_clients["ben"]
    snapshots: list[list] = []

    with ledger_feed.subscription_all(engine, snapshots.append):
        BatchLedgerWriter.add_entries(
            db_session,
            [
                {"client_id": ava.id, **_session_entry(datetime(2025, 3, 4, 9))},
                {"client_id": ben.id, **_session_entry(datetime(2025, 3, 4, 10))},
            ],
        )

    assert len(snapshots) == 2
    assert {entry.client_id for entry in snapshots[-1]} == {ava.id, ben.id}


def test_rolled_back_changes_are_not_published(engine, db_session, seed_clients) -> None:
    ava = seed_clients["ava"]
    snapshots: list[list] = []

    with ledger_feed.subscription(engine, ava.id, snapshots.append):
        LedgerStore.add(db_session, ava.id, _session_entry(datetime(2025, 3, 4)), commit=False)
        db_session.rollback()
        db_session.commit()

    assert snapshots == [[]]


def test_failing_listener_does_not_break_writers(engine, db_session, seed_clients) -> None:
    ava = seed_clients["ava"]
    received: list[list] = []
    calls = {"count": 0}

    def explode(entries):
        calls["count"] += 1
        if calls["count"] > 1:
            raise RuntimeError("listener bug")

    with ledger_feed.subscription(engine, ava.id, explode), ledger_feed.subscription(
        engine, ava.id, received.append
    ):
        entry_id = LedgerStore.add(db_session, ava.id, _session_entry(datetime(2025, 3, 4)))

    assert entry_id
    assert len(received) == 2


def test_load_errors_go_to_error_callback(seed_clients) -> None:
    errors: list[Exception] = []
    changes: list[list] = []

    class BrokenBind:
        engine = None

    unsubscribe = ledger_feed.subscribe(BrokenBind(), seed_clients["ava"].id, changes.append, errors.append)
    unsubscribe()

    assert changes == []
    assert len(errors) == 1


def test_unsubscribe_releases_listener(engine, seed_clients) -> None:
    before = ledger_feed.listener_count()

    unsubscribe = ledger_feed.subscribe(engine, seed_clients["ava"].id, lambda entries: None)
    assert ledger_feed.listener_count() == before + 1

    unsubscribe()
    unsubscribe()
    assert ledger_feed.listener_count() == before


def test_uninstalled_feed_stops_publishing(engine, session_factory, seed_clients) -> None:
    feed = LedgerFeed()
    feed.install(session_factory)
    ava = seed_clients["ava"]
    snapshots: list[list] = []

    with feed.subscription(engine, ava.id, snapshots.append):
        with session_factory() as session:
            LedgerStore.add(session, ava.id, _session_entry(datetime(2025, 3, 4)))
        assert len(snapshots) == 2

        feed.uninstall()
        with session_factory() as session:
            LedgerStore.add(session, ava.id, _session_entry(datetime(2025, 3, 11)))

    assert len(snapshots) == 2


def test_failing_error_callback_does_not_reach_the_writer(engine, db_session, seed_clients) -> None:
    ava = seed_clients["ava"]
    received: list[list] = []

    def explode(exc):
        raise RuntimeError("error handler bug")

    connection = engine.connect()
    broken = ledger_feed.subscribe(connection, ava.id, lambda entries: None, explode)
    connection.close()
    try:
        with ledger_feed.subscription(engine, ava.id, received.append):
            entry_id = LedgerStore.add(db_session, ava.id, _session_entry(datetime(2025, 3, 4)))
    finally:
        broken()

    assert entry_id
    assert db_session.query(models.ClientLedgerEntry).count() == 1
    assert len(received) == 2
