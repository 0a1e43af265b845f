"""Dated session and payment events owned by a client."""

from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, new_identifier


class LedgerEntryType(str, enum.Enum):
    """Kinds of events tracked on a client's ledger."""

    SESSION = "session"
    PAYMENT = "payment"


class PlannerSlotState(str, enum.Enum):
    """Label attached to session entries by the day planner."""

    SCHEDULED = "scheduled"
    HELD = "held"
    CANCELED = "canceled"


LEDGER_ENTRY_TYPE_ENUM = SAEnum(
    LedgerEntryType,
    name="client_ledger_entry_type_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class ClientLedgerEntry(Base):
    """Represents a session rendered or a payment received for a client."""

    __tablename__ = "client_ledger_entries"

    id = Column("ledger_entry_id", GUID(), primary_key=True, default=new_identifier)
    client_id = Column(
        GUID(),
        ForeignKey("clients.client_id", ondelete="CASCADE"),
        nullable=False,
    )
    entry_type = Column(LEDGER_ENTRY_TYPE_ENUM, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    at = Column(DateTime(timezone=False), nullable=False)
    note = Column(Text, nullable=False, default="")
    state = Column(String(32), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    client = relationship("Client", back_populates="ledger_entries")


Index("client_ledger_entries_client_at_idx", ClientLedgerEntry.client_id, ClientLedgerEntry.at)
Index("client_ledger_entries_at_idx", ClientLedgerEntry.at)
