from __future__ import annotations

import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the project root (which exposes the ``backend`` package) is on ``sys.path``
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.practice import models
from backend.practice.database import Base, get_db
from backend.practice.main import app


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


def _create_client(db_session: Session, **overrides) -> models.Client:
    starting_balance = Decimal(str(overrides.pop("starting_balance", "0")))
    values = {
        "file_number": "1",
        "first_name": "Ava",
        "last_name": "Stone",
        "price_per_session": Decimal("100"),
        "currency": "USD",
        "starting_balance": starting_balance,
        "cached_meetings_total": Decimal("0"),
        "cached_paid_total": Decimal("0"),
        "cached_remain": starting_balance,
    }
    values.update(overrides)
    record = models.Client(**values)
    db_session.add(record)
    db_session.commit()
    return record


def _create_entry(
    db_session: Session,
    client_id: str,
    entry_type: models.LedgerEntryType,
    amount: str,
    at: datetime,
    **extra,
) -> models.ClientLedgerEntry:
    """Insert a ledger row directly, leaving the cached totals untouched."""

    record = models.ClientLedgerEntry(
        client_id=client_id,
        entry_type=entry_type,
        amount=Decimal(amount),
        at=at,
        note=extra.get("note", ""),
        state=extra.get(
            "state", "scheduled" if entry_type == models.LedgerEntryType.SESSION else ""
        ),
    )
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture
def seed_clients(db_session: Session) -> dict:
    ava = _create_client(db_session)
    ben = _create_client(
        db_session,
        file_number="2",
        first_name="Ben",
        last_name="Okafor",
        phone="555-0102",
        email="ben@example.com",
        price_per_session=Decimal("80"),
        starting_balance="50",
    )
    return {"ava": ava, "ben": ben}


@pytest.fixture
def make_client(db_session: Session):
    def factory(**overrides) -> models.Client:
        return _create_client(db_session, **overrides)

    return factory


@pytest.fixture
def make_entry(db_session: Session):
    def factory(
        client_id: str,
        entry_type: models.LedgerEntryType,
        amount: str,
        at: datetime,
        **extra,
    ) -> models.ClientLedgerEntry:
        return _create_entry(db_session, client_id, entry_type, amount, at, **extra)

    return factory
