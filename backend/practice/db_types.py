"""Custom SQLAlchemy column types shared by the practice models."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.dialects import postgresql
from sqlalchemy.types import CHAR, TypeDecorator


class GUID(TypeDecorator):
    """Platform-independent GUID/UUID type.

    Stores UUID values as ``UUID`` in PostgreSQL and as 36-character strings
    elsewhere. Values are normalised to strings when read so client and
    ledger identifiers can be handled as plain text everywhere else.
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        if dialect.name == "postgresql":
            if isinstance(value, uuid.UUID):
                return value
            return uuid.UUID(str(value))
        return str(value)

    def process_result_value(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        return str(value)


def new_identifier() -> str:
    """Return a fresh identifier for a client or ledger row."""

    return str(uuid.uuid4())


def is_identifier(value: Any) -> bool:
    """Whether ``value`` can be bound to a ``GUID`` column on every backend."""

    if value is None:
        return False
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True
