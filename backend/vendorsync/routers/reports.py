"""Manual invocation routes for vendor reports."""

import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.database import get_db
from vendorsync.limiter import limiter, manual_run_limit
from vendorsync.schemas.sync import ReportSyncStateOut, SyncSummary
from vendorsync.services.checkpoints import ReportSyncStateStore
from vendorsync.services.report_engine import ReportEngine
from vendorsync.services.report_types import UnknownReportKindError, get_report_kind

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/sync-states", response_model=list[ReportSyncStateOut])
async def list_sync_states(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[ReportSyncStateOut]:
    states = await ReportSyncStateStore(db).list_all()
    return [ReportSyncStateOut.model_validate(state) for state in states]


@router.post("/queue/drain", response_model=SyncSummary)
@limiter.limit(manual_run_limit)
async def drain_report_queue(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    max_items: int | None = Query(None, ge=1, le=500, description="Entries to process"),
) -> SyncSummary:
    """Re-poll due pending report jobs now."""
    return await ReportEngine(db).drain_report_queue(max_items=max_items)


@router.post("/{report_kind}/sync", response_model=SyncSummary)
@limiter.limit(manual_run_limit)
async def run_report_sync(
    request: Request,
    report_kind: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    end: date | None = Query(None, description="Last reporting day (YYYY-MM-DD); default yesterday"),
    lookback_days: int | None = Query(
        None, ge=0, le=3650, description="Lookback when the report has no sync state"
    ),
) -> SyncSummary:
    """
    Sync one report kind for every active account, one reporting day at a time.

    Reports still processing after the polling budget are parked in the
    pending queue and reported as deferred.
    """
    try:
        get_report_kind(report_kind)
    except UnknownReportKindError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Manual {report_kind} sync requested (end={end}, lookback_days={lookback_days})")
    return await ReportEngine(db).run_report_sync(
        report_kind, explicit_end=end, default_lookback_days=lookback_days
    )
