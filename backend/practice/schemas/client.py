"""Pydantic schemas for the client resources."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .common import PaginatedResponse


class BalanceStatus(str, Enum):
    """Sign of a client's running balance."""

    OWES = "owes"
    SETTLED = "settled"
    CREDIT = "credit"

    @classmethod
    def from_remain(cls, remain: Decimal) -> "BalanceStatus":
        if remain > 0:
            return cls.OWES
        if remain < 0:
            return cls.CREDIT
        return cls.SETTLED


class BalanceFilter(str, Enum):
    """Balance filters offered by the client listing."""

    ALL = "all"
    DEBT = "debt"
    SETTLED = "settled"
    CREDIT = "credit"


class ClientSort(str, Enum):
    """Orderings offered by the client listing."""

    FILE = "file"
    REMAIN_DESC = "remain-desc"
    REMAIN_ASC = "remain-asc"
    PRICE_DESC = "price-desc"
    PRICE_ASC = "price-asc"


class ClientBase(BaseModel):
    """Profile attributes shared by create and read operations."""

    file_number: str = ""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""
    price_per_session: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = ""
    fix_time: str = ""
    source: str = ""
    starting_balance: Decimal = Field(
        default=Decimal("0"),
        description="Debt (positive) or credit (negative) carried in from before the ledger",
    )


class ClientCreate(ClientBase):
    """Schema used when creating a client."""

    pass


class ClientUpdate(BaseModel):
    """Profile edit; cached totals are never accepted from callers."""

    file_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    price_per_session: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = None
    fix_time: Optional[str] = None
    source: Optional[str] = None
    starting_balance: Optional[Decimal] = None

    model_config = ConfigDict(extra="forbid")


class ClientRead(ClientBase):
    """Schema used when returning client data."""

    id: str
    cached_meetings_total: Decimal = Decimal("0")
    cached_paid_total: Decimal = Decimal("0")
    cached_remain: Decimal = Decimal("0")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator(
        "cached_meetings_total", "cached_paid_total", "cached_remain", mode="before"
    )
    @classmethod
    def _default_missing_totals(cls, value):
        """Legacy rows may predate the cached columns."""

        return Decimal("0") if value is None else value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def balance_status(self) -> BalanceStatus:
        return BalanceStatus.from_remain(self.cached_remain)


class ClientListResponse(PaginatedResponse[ClientRead]):
    """Paginated client listing."""

    pass
