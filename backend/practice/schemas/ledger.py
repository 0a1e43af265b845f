"""Pydantic schemas for ledger entries, balances and batch commits."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..models.ledger_entry import LedgerEntryType
from .client import BalanceStatus


def _strip_timezone(value: Optional[datetime]) -> Optional[datetime]:
    # Event times are practice wall-clock times; offsets are dropped, not converted.
    if value is not None and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


class LedgerEntryInput(BaseModel):
    """Fields accepted by the ledger store when creating an entry.

    ``amount`` may be omitted, in which case the entry is stored with a zero
    amount. Positivity is enforced by the request schemas used at the API
    boundary, not here.
    """

    entry_type: LedgerEntryType = Field(
        ...,
        validation_alias=AliasChoices("entry_type", "type"),
        description="Either a rendered session or a received payment",
    )
    amount: Optional[Decimal] = Field(default=None, description="Amount of the event")
    at: datetime = Field(..., description="When the event took place")
    note: str = ""
    state: Optional[str] = Field(
        default=None, description="Planner label, only meaningful for sessions"
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("at")
    @classmethod
    def _normalize_at(cls, value):
        return _strip_timezone(value)


class LedgerEntryCreate(LedgerEntryInput):
    """Entry creation request coming from the UI."""

    amount: Decimal = Field(..., gt=0, description="Amount of the event")


class LedgerEntryUpdate(BaseModel):
    """Partial edit of an entry. The entry type is immutable and rejected."""

    amount: Optional[Decimal] = Field(default=None, gt=0)
    at: Optional[datetime] = None
    note: Optional[str] = None
    state: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("amount", "at")
    @classmethod
    def _reject_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be cleared")
        return value

    @field_validator("at")
    @classmethod
    def _normalize_at(cls, value):
        return _strip_timezone(value)


class LedgerEntryRead(BaseModel):
    """Schema returned when reading ledger entries."""

    id: str
    client_id: str
    entry_type: LedgerEntryType
    amount: Decimal
    at: datetime
    note: str = ""
    state: str = ""
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("note", "state", mode="before")
    @classmethod
    def _default_blank_text(cls, value):
        return value or ""


class LedgerEntryCreated(BaseModel):
    """Identifier of a new entry together with the refreshed balance."""

    id: str
    balance: "BalanceSnapshotRead"


class BalanceSnapshotRead(BaseModel):
    """Result of a balance calculation."""

    meetings_total: Decimal
    paid_total: Decimal
    remain: Decimal
    status: BalanceStatus

    model_config = ConfigDict(from_attributes=True)


class CacheAdjustRequest(BaseModel):
    """Delta applied to a client's cached totals."""

    meetings_delta: Decimal = Decimal("0")
    paid_delta: Decimal = Decimal("0")


class BatchLedgerItem(LedgerEntryCreate):
    """One new entry inside a batch commit."""

    client_id: str = Field(..., min_length=1)


class BatchLedgerRequest(BaseModel):
    """Entries committed together, for example a planned day of sessions."""

    items: list[BatchLedgerItem] = Field(default_factory=list)


class ClientDeltaRead(BaseModel):
    """Aggregated cache adjustment applied to one client by a batch."""

    client_id: str
    meetings_delta: Decimal
    paid_delta: Decimal

    model_config = ConfigDict(from_attributes=True)


class BatchLedgerResult(BaseModel):
    """Outcome of a committed batch."""

    entry_ids: list[str] = Field(default_factory=list)
    deltas: list[ClientDeltaRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


LedgerEntryCreated.model_rebuild()
