"""Expose SQLAlchemy models for convenient imports."""

from .client import Client
from .ledger_entry import ClientLedgerEntry, LedgerEntryType, PlannerSlotState
from .operational_metric import OperationalMetricEvent

__all__ = [
    "Client",
    "ClientLedgerEntry",
    "LedgerEntryType",
    "PlannerSlotState",
    "OperationalMetricEvent",
]
