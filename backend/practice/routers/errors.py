"""Translation of service exceptions into HTTP errors."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from ..services import LedgerStoreError

LOGGER = logging.getLogger(__name__)

SERVICE_ERRORS = (LookupError, ValueError, LedgerStoreError)


def http_error(exc: Exception) -> HTTPException:
    """Map a service exception onto the matching HTTP status."""

    if isinstance(exc, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    LOGGER.warning("Ledger storage unavailable: %s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(exc) or "The ledger store is temporarily unavailable.",
    )
