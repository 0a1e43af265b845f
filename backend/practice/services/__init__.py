"""Service layer encapsulating business logic for API routers."""

from .balance import BalanceSnapshot, balance_status, compute_balance, to_decimal
from .balance_cache import BalanceCache, CacheDelta
from .batch_ledger import BatchLedgerWriter, BatchResult, BatchTooLargeError, ClientDelta
from .clients import ClientService
from .day_aggregation import (
    DayAggregationQueries,
    DayLedgerEntry,
    DaySummary,
    ScheduleSuggestion,
    normalize_slot_state,
)
from .ledger import LedgerService, RecordedEntry
from .ledger_feed import LedgerFeed, ledger_feed, mark_ledger_touched
from .ledger_store import (
    ClientNotFoundError,
    LedgerEntryNotFoundError,
    LedgerStore,
    LedgerStoreError,
)
from .observability import MetricOutcome, ObservabilityService

__all__ = [
    "BalanceSnapshot",
    "balance_status",
    "compute_balance",
    "to_decimal",
    "BalanceCache",
    "CacheDelta",
    "BatchLedgerWriter",
    "BatchResult",
    "BatchTooLargeError",
    "ClientDelta",
    "ClientService",
    "DayAggregationQueries",
    "DayLedgerEntry",
    "DaySummary",
    "ScheduleSuggestion",
    "normalize_slot_state",
    "LedgerService",
    "RecordedEntry",
    "LedgerFeed",
    "ledger_feed",
    "mark_ledger_touched",
    "ClientNotFoundError",
    "LedgerEntryNotFoundError",
    "LedgerStore",
    "LedgerStoreError",
    "MetricOutcome",
    "ObservabilityService",
]
