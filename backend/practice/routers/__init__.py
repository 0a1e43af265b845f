"""Routers package."""

from .clients import router as clients_router
from .ledger import router as ledger_router
from .planner import router as planner_router

__all__ = [
    "clients_router",
    "ledger_router",
    "planner_router",
]
