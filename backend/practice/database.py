"""Engine, session factory and declarative base for the ledger database.

The connection string comes from ``DATABASE_URL``. Without it the ledger is
kept in ``backend/practice.db``. Deployments that must never fall back to a
local file set ``REQUIRE_POSTGRES=1``; pool sizing for server databases is
read from the ``DATABASE_POOL_*`` variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

LOCAL_LEDGER_PATH = Path(__file__).resolve().parent.parent / "practice.db"
REQUIRE_POSTGRES_ENV = "REQUIRE_POSTGRES"

# (environment variable, create_engine keyword, default)
POOL_SETTINGS = (
    ("DATABASE_POOL_SIZE", "pool_size", 5),
    ("DATABASE_MAX_OVERFLOW", "max_overflow", 10),
    ("DATABASE_POOL_TIMEOUT", "pool_timeout", 30),
    ("DATABASE_POOL_RECYCLE", "pool_recycle", 1800),
)


def read_int_env(name: str, default: int, *, minimum: int = 0) -> int:
    """Integer setting from the environment; blank means ``default``."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}")
    return value


def read_bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _is_sqlite(url: URL) -> bool:
    return url.drivername.startswith("sqlite")


def _resolve_database_url(raw_url: Optional[str]) -> str:
    postgres_only = read_bool_env(REQUIRE_POSTGRES_ENV, False)
    if not raw_url:
        if postgres_only:
            raise RuntimeError(
                "DATABASE_URL must point at PostgreSQL when REQUIRE_POSTGRES=1"
            )
        LOCAL_LEDGER_PATH.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{LOCAL_LEDGER_PATH.as_posix()}"

    url = make_url(raw_url)
    if _is_sqlite(url):
        if postgres_only:
            raise RuntimeError("REQUIRE_POSTGRES=1 does not allow a SQLite ledger")
        if url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return url.render_as_string(hide_password=False)


def engine_options(database_url: str) -> Dict[str, Any]:
    """Keyword arguments for ``create_engine`` matching the backend in use."""

    if _is_sqlite(make_url(database_url)):
        # sessions are shared with FastAPI's threadpool
        return {"connect_args": {"check_same_thread": False}}
    options: Dict[str, Any] = {"pool_pre_ping": True}
    for env_name, keyword, default in POOL_SETTINGS:
        options[keyword] = read_int_env(env_name, default)
    return options


SQLALCHEMY_DATABASE_URL = _resolve_database_url(os.getenv("DATABASE_URL"))

engine = create_engine(SQLALCHEMY_DATABASE_URL, **engine_options(SQLALCHEMY_DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator:
    """Request-scoped session for the routers."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
