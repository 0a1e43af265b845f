"""Bring the ledger schema up to date with Alembic before serving requests."""

from __future__ import annotations

import errno
import logging
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Sequence

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine.reflection import Inspector

from .database import SQLALCHEMY_DATABASE_URL

LOGGER = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = BACKEND_DIR.parent

LOCK_FILENAME = ".alembic-migration.lock"
LOCK_RETRY_DELAY = 0.25
LOCK_TIMEOUT_ENV = "ALEMBIC_MIGRATION_LOCK_TIMEOUT"
DEFAULT_LOCK_TIMEOUT = 30.0

if os.name == "posix":  # pragma: no cover - platform specific
    import fcntl
else:  # pragma: no cover - platform specific
    import msvcrt

RevisionSentinel = tuple[str, Callable[[Inspector], bool]]


def _table_exists(inspector: Inspector, table_name: str) -> bool:
    return inspector.has_table(table_name)


def _index_exists(inspector: Inspector, table_name: str, index_name: str) -> bool:
    if not inspector.has_table(table_name):
        return False
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _column_exists(inspector: Inspector, table_name: str, column_name: str) -> bool:
    if not inspector.has_table(table_name):
        return False
    return column_name in {column["name"] for column in inspector.get_columns(table_name)}


# Newest first: the first matching revision is stamped on unversioned databases.
REVISION_SENTINELS: Sequence[RevisionSentinel] = (
    (
        "20261017_0001",
        lambda inspector: (
            _column_exists(inspector, "clients", "cached_remain")
            and _index_exists(
                inspector, "client_ledger_entries", "client_ledger_entries_client_at_idx"
            )
            and _table_exists(inspector, "operational_metric_events")
        ),
    ),
)


def read_lock_timeout() -> float:
    """Seconds to wait for another process to finish migrating."""

    raw = os.getenv(LOCK_TIMEOUT_ENV)
    if not raw or not raw.strip():
        return DEFAULT_LOCK_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning(
            "Invalid %s=%s; using %.1f seconds", LOCK_TIMEOUT_ENV, raw, DEFAULT_LOCK_TIMEOUT
        )
        return DEFAULT_LOCK_TIMEOUT
    if value <= 0:
        LOGGER.warning(
            "%s must be positive; using %.1f seconds", LOCK_TIMEOUT_ENV, DEFAULT_LOCK_TIMEOUT
        )
        return DEFAULT_LOCK_TIMEOUT
    return value


def _is_lock_conflict(error: OSError) -> bool:
    if getattr(error, "errno", None) in {errno.EACCES, errno.EAGAIN, errno.EBUSY}:
        return True
    # Windows reports sharing (32) and lock (33) violations.
    return getattr(error, "winerror", None) in {32, 33}


def _lock(fileobj) -> None:
    if os.name == "posix":  # pragma: no cover - platform specific
        fcntl.flock(fileobj.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    else:  # pragma: no cover - platform specific
        msvcrt.locking(fileobj.fileno(), msvcrt.LK_NBLCK, 1)


def _unlock(fileobj) -> None:
    if os.name == "posix":  # pragma: no cover - platform specific
        fcntl.flock(fileobj.fileno(), fcntl.LOCK_UN)
    else:  # pragma: no cover - platform specific
        msvcrt.locking(fileobj.fileno(), msvcrt.LK_UNLCK, 1)


@contextmanager
def migration_lock(path: Path, *, timeout: float) -> Iterator[None]:
    """Hold an exclusive file lock so concurrent workers migrate one at a time."""

    path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout
    with path.open("a+") as handle:
        while True:
            try:
                _lock(handle)
                break
            except OSError as error:
                if not isinstance(error, BlockingIOError) and not _is_lock_conflict(error):
                    raise
                if time.monotonic() >= deadline:
                    raise TimeoutError("Timed out waiting for Alembic migration lock") from error
                time.sleep(LOCK_RETRY_DELAY)
        LOGGER.debug("Acquired Alembic migration lock at %s", path)
        try:
            yield
        finally:
            try:
                _unlock(handle)
            except OSError as error:  # pragma: no cover - closing the file releases it
                LOGGER.warning("Could not release migration lock at %s: %s", path, error)


def detect_revision(
    inspector: Inspector, sentinels: Iterable[RevisionSentinel] = REVISION_SENTINELS
) -> Optional[str]:
    for revision, check in sentinels:
        if check(inspector):
            return revision
    return None


def build_alembic_config(database_url: str) -> Config:
    config = Config(str(BACKEND_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


def run_database_migrations() -> None:
    """Upgrade the database to the latest revision.

    A database that already holds the ledger tables but no ``alembic_version``
    table is stamped with the matching revision instead of being recreated.
    """

    if str(PROJECT_ROOT) not in sys.path:
        sys.path.insert(0, str(PROJECT_ROOT))

    database_url = os.getenv("DATABASE_URL") or SQLALCHEMY_DATABASE_URL
    config = build_alembic_config(database_url)
    LOGGER.info("Running database migrations at %s", database_url)

    with migration_lock(BACKEND_DIR / LOCK_FILENAME, timeout=read_lock_timeout()):
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        engine = create_engine(database_url, connect_args=connect_args)

        try:
            inspector = inspect(engine)
            if inspector.has_table("alembic_version"):
                LOGGER.debug("Alembic version table present; applying pending revisions")
                command.upgrade(config, "head")
                return

            detected_revision = detect_revision(inspector)
            if detected_revision is None:
                LOGGER.info("No versioned ledger schema found; running full upgrade")
                command.upgrade(config, "head")
                return

            head_revision = ScriptDirectory.from_config(config).get_current_head()
            LOGGER.info(
                "Existing tables match revision %s; stamping before upgrade", detected_revision
            )
            command.stamp(config, detected_revision)
            if detected_revision != head_revision:
                command.upgrade(config, "head")
        finally:
            engine.dispose()
