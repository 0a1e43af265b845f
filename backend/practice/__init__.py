"""Counseling practice ledger backend."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    # Alembic and other CLIs import the models without the FastAPI app.
    from fastapi import FastAPI


def get_app() -> FastAPI:
    """Return the FastAPI application without importing it eagerly."""

    from .main import app as fastapi_app

    return fastapi_app


__all__ = ["get_app"]
