"""Router for the day planner and income views spanning all clients."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..services import BatchLedgerWriter, DayAggregationQueries, LedgerService
from .errors import SERVICE_ERRORS, http_error

router = APIRouter()


def _parse_month(raw_month: str) -> date:
    """Accept ``YYYY-MM`` and return the first day of that month."""

    try:
        return datetime.strptime(raw_month.strip(), "%Y-%m").date()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Month must use the YYYY-MM format",
        ) from exc


@router.post(
    "/batch",
    response_model=schemas.BatchLedgerResult,
    status_code=status.HTTP_201_CREATED,
)
def commit_batch(
    batch_in: schemas.BatchLedgerRequest,
    db: Session = Depends(get_db),
) -> schemas.BatchLedgerResult:
    """Store several new entries and their cache deltas atomically."""
    try:
        result = BatchLedgerWriter.add_entries(db, batch_in.items)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    return schemas.BatchLedgerResult.model_validate(result)


@router.get("/day", response_model=schemas.DayLedgerListResponse)
def list_day_entries(
    day: date = Query(..., description="Calendar day in practice local time"),
    entry_type: models.LedgerEntryType = Query(models.LedgerEntryType.SESSION),
    client_ids: Optional[list[str]] = Query(
        None, description="Restrict the result to these clients"
    ),
    db: Session = Depends(get_db),
) -> schemas.DayLedgerListResponse:
    entries = DayAggregationQueries.entries_for_day(
        db, day, entry_type, known_client_ids=client_ids
    )
    items = [schemas.DayLedgerEntryRead.model_validate(entry) for entry in entries]
    return schemas.DayLedgerListResponse(items=items, total=len(items))


@router.get("/month", response_model=schemas.MonthActivityResponse)
def list_month_days(
    month: str = Query(..., description="Month formatted as YYYY-MM"),
    entry_type: models.LedgerEntryType = Query(models.LedgerEntryType.SESSION),
    client_ids: Optional[list[str]] = Query(None),
    db: Session = Depends(get_db),
) -> schemas.MonthActivityResponse:
    """Return the days of a month that hold at least one matching entry."""
    month_date = _parse_month(month)
    days = DayAggregationQueries.days_with_entries_in_month(
        db, month_date, entry_type, known_client_ids=client_ids
    )
    return schemas.MonthActivityResponse(
        month=month_date.strftime("%Y-%m"),
        entry_type=entry_type,
        days=sorted(days),
    )


@router.get("/suggestions", response_model=schemas.ScheduleSuggestionListResponse)
def list_suggestions(
    day: date = Query(..., description="Day being planned"),
    lookback_days: Optional[int] = Query(None, ge=1, le=366),
    client_ids: Optional[list[str]] = Query(None),
    db: Session = Depends(get_db),
) -> schemas.ScheduleSuggestionListResponse:
    """Suggest clients who usually come on the same weekday."""
    try:
        suggestions = DayAggregationQueries.suggest_clients_for_weekday(
            db, day, lookback_days, known_client_ids=client_ids
        )
    except ValueError as exc:
        raise http_error(exc) from exc
    items = [schemas.ScheduleSuggestionRead.model_validate(item) for item in suggestions]
    return schemas.ScheduleSuggestionListResponse(items=items, total=len(items))


@router.get("/summary", response_model=schemas.DaySummaryRead)
def read_day_summary(
    day: date = Query(...),
    entry_type: models.LedgerEntryType = Query(models.LedgerEntryType.PAYMENT),
    client_ids: Optional[list[str]] = Query(None),
    db: Session = Depends(get_db),
) -> schemas.DaySummaryRead:
    summary = DayAggregationQueries.day_summary(
        db, day, entry_type, known_client_ids=client_ids
    )
    return schemas.DaySummaryRead.model_validate(summary)


@router.delete(
    "/entries/{client_id}/{entry_id}",
    response_model=schemas.LedgerEntryRead,
)
def remove_entry(
    client_id: str, entry_id: str, db: Session = Depends(get_db)
) -> schemas.LedgerEntryRead:
    """Delete a day entry and subtract its amount from the client's cache."""
    try:
        return LedgerService.remove_with_adjustment(db, client_id, entry_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
