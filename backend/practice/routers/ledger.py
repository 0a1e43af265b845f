"""Router exposing the ledger of a single client."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import BalanceCache, CacheDelta, LedgerService, LedgerStore
from .errors import SERVICE_ERRORS, http_error

router = APIRouter()


@router.get("/", response_model=schemas.ItemListResponse[schemas.LedgerEntryRead])
def list_entries(client_id: str, db: Session = Depends(get_db)):
    """Return the client's entries, most recent first."""
    try:
        LedgerStore.ensure_client(db, client_id)
        entries = LedgerStore.list_entries(db, client_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return {"items": entries, "total": len(entries)}


@router.post(
    "/",
    response_model=schemas.LedgerEntryCreated,
    status_code=status.HTTP_201_CREATED,
)
def add_entry(
    client_id: str,
    entry_in: schemas.LedgerEntryCreate,
    db: Session = Depends(get_db),
) -> schemas.LedgerEntryCreated:
    """Record a session or payment and return the refreshed balance."""
    try:
        recorded = LedgerService.record(db, client_id, entry_in)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return schemas.LedgerEntryCreated(
        id=recorded.entry_id,
        balance=schemas.BalanceSnapshotRead.model_validate(recorded.balance),
    )


@router.patch("/{entry_id}", response_model=schemas.BalanceSnapshotRead)
def edit_entry(
    client_id: str,
    entry_id: str,
    entry_in: schemas.LedgerEntryUpdate,
    db: Session = Depends(get_db),
) -> schemas.BalanceSnapshotRead:
    """Edit the amount, time, note or state of an entry."""
    try:
        snapshot = LedgerService.edit(db, client_id, entry_id, entry_in)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return schemas.BalanceSnapshotRead.model_validate(snapshot)


@router.delete("/{entry_id}", response_model=schemas.BalanceSnapshotRead)
def delete_entry(
    client_id: str, entry_id: str, db: Session = Depends(get_db)
) -> schemas.BalanceSnapshotRead:
    """Delete an entry and return the recomputed balance."""
    try:
        snapshot = LedgerService.delete(db, client_id, entry_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return schemas.BalanceSnapshotRead.model_validate(snapshot)


@router.post("/recompute", response_model=schemas.BalanceSnapshotRead)
def recompute_balance(
    client_id: str, db: Session = Depends(get_db)
) -> schemas.BalanceSnapshotRead:
    try:
        snapshot = BalanceCache.recompute_and_cache(db, client_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return schemas.BalanceSnapshotRead.model_validate(snapshot)


@router.post("/adjust", response_model=schemas.ClientRead)
def adjust_cache(
    client_id: str,
    delta_in: schemas.CacheAdjustRequest,
    db: Session = Depends(get_db),
) -> schemas.ClientRead:
    """Apply a known delta to the cached totals without reading the ledger."""
    delta = CacheDelta(meetings=delta_in.meetings_delta, paid=delta_in.paid_delta)
    try:
        BalanceCache.adjust_cache(db, client_id, delta)
        return LedgerStore.ensure_client(db, client_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
