import pytest

from backend.practice.database import engine_options, read_int_env


def test_sqlite_ledger_allows_cross_thread_sessions():
    assert engine_options("sqlite:///ledger.db") == {
        "connect_args": {"check_same_thread": False}
    }


def test_server_pool_settings_come_from_the_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_POOL_SIZE", "12")
    monkeypatch.delenv("DATABASE_MAX_OVERFLOW", raising=False)

    options = engine_options("postgresql://ledger@db.example.com/practice")

    assert options["pool_pre_ping"] is True
    assert options["pool_size"] == 12
    assert options["max_overflow"] == 10


def test_read_int_env_rejects_invalid_values(monkeypatch):
    monkeypatch.setenv("LEDGER_TEST_LIMIT", "  ")
    assert read_int_env("LEDGER_TEST_LIMIT", 7) == 7

    monkeypatch.setenv("LEDGER_TEST_LIMIT", "many")
    with pytest.raises(ValueError):
        read_int_env("LEDGER_TEST_LIMIT", 7)

    monkeypatch.setenv("LEDGER_TEST_LIMIT", "0")
    with pytest.raises(ValueError):
        read_int_env("LEDGER_TEST_LIMIT", 7, minimum=1)
