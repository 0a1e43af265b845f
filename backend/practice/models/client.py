"""SQLAlchemy model definitions for clients."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, new_identifier


class Client(Base):
    """A counseling client with its pricing profile and cached balance."""

    __tablename__ = "clients"
    __table_args__ = (
        CheckConstraint(
            "price_per_session >= 0", name="ck_clients_price_per_session_non_negative"
        ),
    )

    id = Column("client_id", GUID(), primary_key=True, default=new_identifier)
    file_number = Column(String, nullable=False, default="")
    first_name = Column(String, nullable=False, default="")
    last_name = Column(String, nullable=False, default="")
    phone = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, default="")
    price_per_session = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(16), nullable=False, default="")
    fix_time = Column(String, nullable=False, default="")
    source = Column(String, nullable=False, default="")
    starting_balance = Column(
        Numeric(12, 2),
        nullable=False,
        default=0,
        comment="Debt (positive) or credit (negative) carried in before the ledger existed",
    )
    cached_meetings_total = Column(Numeric(12, 2), nullable=True, default=0)
    cached_paid_total = Column(Numeric(12, 2), nullable=True, default=0)
    cached_remain = Column(Numeric(12, 2), nullable=True, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    ledger_entries = relationship(
        "ClientLedgerEntry",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def cached_remain_value(self) -> Decimal:
        """Cached remain with legacy NULLs read as zero."""

        return Decimal(self.cached_remain or 0)


Index("clients_file_number_idx", Client.file_number)
Index("clients_last_name_idx", Client.last_name)
