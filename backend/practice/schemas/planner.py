"""Schemas returned by the day planner and income views."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.ledger_entry import LedgerEntryType
from .client import ClientRead
from .common import ItemListResponse


class DayLedgerEntryRead(BaseModel):
    """A ledger entry of a given day annotated with its owning client."""

    id: str
    client_id: str
    entry_type: LedgerEntryType
    at: datetime
    time: str = Field(..., description="Event time formatted as HH:MM")
    amount: Decimal
    note: str = ""
    state: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DayLedgerListResponse(ItemListResponse[DayLedgerEntryRead]):
    """Entries of one day across all clients."""

    pass


class MonthActivityResponse(BaseModel):
    """Calendar days of a month holding at least one matching entry."""

    month: str = Field(..., description="Month formatted as YYYY-MM")
    entry_type: LedgerEntryType
    days: list[str] = Field(default_factory=list)


class ScheduleSuggestionRead(BaseModel):
    """A client who usually comes on the selected weekday."""

    client: ClientRead
    count: int = Field(..., ge=1)
    last_date: datetime

    model_config = ConfigDict(from_attributes=True)


class ScheduleSuggestionListResponse(ItemListResponse[ScheduleSuggestionRead]):
    """Ranked weekday suggestions."""

    pass


class DaySummaryRead(BaseModel):
    """Count and total of one day's entries."""

    day: date
    entry_type: LedgerEntryType
    count: int = Field(..., ge=0)
    total: Optional[Decimal] = Field(
        default=None, description="Withheld when the entries span several currencies"
    )
    currency: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
