"""Expose Pydantic schemas for convenient imports."""

from .common import ItemListResponse, PaginatedResponse
from .client import (
    BalanceFilter,
    BalanceStatus,
    ClientBase,
    ClientCreate,
    ClientListResponse,
    ClientRead,
    ClientSort,
    ClientUpdate,
)
from .ledger import (
    BalanceSnapshotRead,
    BatchLedgerItem,
    BatchLedgerRequest,
    BatchLedgerResult,
    CacheAdjustRequest,
    ClientDeltaRead,
    LedgerEntryCreate,
    LedgerEntryCreated,
    LedgerEntryInput,
    LedgerEntryRead,
    LedgerEntryUpdate,
)
from .planner import (
    DayLedgerEntryRead,
    DayLedgerListResponse,
    DaySummaryRead,
    MonthActivityResponse,
    ScheduleSuggestionListResponse,
    ScheduleSuggestionRead,
)

__all__ = [
    "ItemListResponse",
    "PaginatedResponse",
    "BalanceFilter",
    "BalanceStatus",
    "ClientBase",
    "ClientCreate",
    "ClientListResponse",
    "ClientRead",
    "ClientSort",
    "ClientUpdate",
    "BalanceSnapshotRead",
    "BatchLedgerItem",
    "BatchLedgerRequest",
    "BatchLedgerResult",
    "CacheAdjustRequest",
    "ClientDeltaRead",
    "LedgerEntryCreate",
    "LedgerEntryCreated",
    "LedgerEntryInput",
    "LedgerEntryRead",
    "LedgerEntryUpdate",
    "DayLedgerEntryRead",
    "DayLedgerListResponse",
    "DaySummaryRead",
    "MonthActivityResponse",
    "ScheduleSuggestionListResponse",
    "ScheduleSuggestionRead",
]
