"""Router containing CRUD operations for clients."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import BalanceCache, ClientService, LedgerStoreError
from .errors import SERVICE_ERRORS, http_error

router = APIRouter()


@router.get("/", response_model=schemas.ClientListResponse)
def list_clients(
    skip: int = Query(0, ge=0, description="Number of clients to skip"),
    limit: int = Query(50, ge=1, le=500, description="Maximum number of clients to return"),
    search: Optional[str] = Query(
        None, description="Case-insensitive search by file number, name, phone or email"
    ),
    balance: schemas.BalanceFilter = Query(
        schemas.BalanceFilter.ALL, description="Filter by the sign of the cached balance"
    ),
    sort: schemas.ClientSort = Query(schemas.ClientSort.FILE, description="Ordering"),
    db: Session = Depends(get_db),
) -> schemas.ClientListResponse:
    """Return clients with pagination and optional filters."""
    normalized_search = search.strip() if search else None

    items, total = ClientService.list_clients(
        db,
        skip=skip,
        limit=limit,
        search=normalized_search,
        balance=balance,
        sort=sort,
    )
    return schemas.ClientListResponse(items=items, total=total, limit=limit, skip=skip)


@router.get("/{client_id}", response_model=schemas.ClientRead)
def get_client(client_id: str, db: Session = Depends(get_db)) -> schemas.ClientRead:
    """Retrieve a single client by its identifier."""
    client = ClientService.get_client(db, client_id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


@router.post("/", response_model=schemas.ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(
    client_in: schemas.ClientCreate,
    db: Session = Depends(get_db),
) -> schemas.ClientRead:
    """Create a new client record."""
    try:
        return ClientService.create_client(db, client_in)
    except (ValueError, LedgerStoreError) as exc:
        raise http_error(exc) from exc


@router.put("/{client_id}", response_model=schemas.ClientRead)
def update_client(
    client_id: str,
    client_in: schemas.ClientUpdate,
    db: Session = Depends(get_db),
) -> schemas.ClientRead:
    """Edit the profile of a client. Cached totals cannot be set here."""
    client = ClientService.get_client(db, client_id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    try:
        return ClientService.update_client(db, client, client_in)
    except (ValueError, LedgerStoreError) as exc:
        raise http_error(exc) from exc


@router.get("/{client_id}/balance", response_model=schemas.BalanceSnapshotRead)
def read_balance(client_id: str, db: Session = Depends(get_db)) -> schemas.BalanceSnapshotRead:
    """Recompute the balance from the full ledger and refresh the cache."""
    try:
        snapshot = BalanceCache.recompute_and_cache(db, client_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return schemas.BalanceSnapshotRead.model_validate(snapshot)


@router.get("/{client_id}/report", response_class=PlainTextResponse)
def read_report(client_id: str, db: Session = Depends(get_db)) -> PlainTextResponse:
    """Return a printable statement of the client's account."""
    try:
        report = ClientService.build_report(db, client_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return PlainTextResponse(report)
