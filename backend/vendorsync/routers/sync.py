"""Manual invocation routes for stream syncs and the deferred segment queue."""

import logging
from datetime import UTC, date, datetime, time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.database import get_db
from vendorsync.limiter import limiter, manual_run_limit
from vendorsync.schemas.sync import CheckpointOut, SyncSummary
from vendorsync.services.checkpoints import CheckpointStore
from vendorsync.services.streams import get_stream
from vendorsync.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["sync"])

ALL_STREAMS = "all"


def range_end(end: date | None) -> datetime | None:
    """Exclusive range end for a calendar date on the query string (that day at UTC midnight)."""
    if end is None:
        return None
    return datetime.combine(end, time.min, tzinfo=UTC)


@router.get("/checkpoints", response_model=list[CheckpointOut])
async def list_checkpoints(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[CheckpointOut]:
    """Every stream's checkpoint, ordered by stream and type."""
    checkpoints = await CheckpointStore(db).list_all()
    return [CheckpointOut.model_validate(cp) for cp in checkpoints]


@router.post("/retry-queue/drain", response_model=SyncSummary)
@limiter.limit(manual_run_limit)
async def drain_retry_queue(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SyncSummary:
    """Re-run every due deferred segment now."""
    return await SyncEngine(db).drain_retry_queue()

@router.post("/{sync_type}", response_model=SyncSummary)
@limiter.limit(manual_run_limit)
async def run_sync(
    request: Request,
    sync_type: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    end: date | None = Query(None, description="Range end (YYYY-MM-DD); default yesterday"),
    lookback_days: int | None = Query(
        None, ge=0, le=3650, description="Lookback when the stream has no checkpoint"
    ),
) -> SyncSummary:
    """
    Run one full sync pass for a stream type (or ``all``) across all active accounts.

    Due deferred segments of that type are drained first. A partial success
    is reported with ``success=false``; completed segments stay saved.
    """
    if sync_type != ALL_STREAMS:
        try:
            get_stream(sync_type)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Manual {sync_type} sync requested (end={end}, lookback_days={lookback_days})")
    return await SyncEngine(db).run_full_sync(
        sync_type=None if sync_type == ALL_STREAMS else sync_type,
        explicit_end=range_end(end),
        default_lookback_days=lookback_days,
    )
