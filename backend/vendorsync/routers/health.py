"""Health and probe endpoints."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.database import get_db
from vendorsync.models import ReportJob, RetrySegment, SyncCheckpoint

router = APIRouter(tags=["health"])


class StreamTypeStatus(BaseModel):
    """Checkpoint summary for one sync type."""

    sync_type: str
    stream_count: int
    last_sync: datetime | None
    oldest_end: datetime | None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    streams: list[StreamTypeStatus]
    retry_queue_depth: int
    report_queue_depth: int


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    """
    Health check endpoint with sync status.

    Returns per sync type the latest sync and the laggiest checkpoint, plus
    the depth of both deferred queues.
    """
    rows = await db.execute(
        select(
            SyncCheckpoint.sync_type,
            func.count(SyncCheckpoint.stream_id),
            func.max(SyncCheckpoint.last_sync_at),
            func.min(SyncCheckpoint.last_end_at),
        )
        .group_by(SyncCheckpoint.sync_type)
        .order_by(SyncCheckpoint.sync_type)
    )
    streams = [
        StreamTypeStatus(
            sync_type=sync_type, stream_count=count, last_sync=last_sync, oldest_end=oldest_end
        )
        for sync_type, count, last_sync, oldest_end in rows.all()
    ]

    retry_depth = (await db.execute(select(func.count(RetrySegment.id)))).scalar() or 0
    report_depth = (await db.execute(select(func.count(ReportJob.id)))).scalar() or 0

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        streams=streams,
        retry_queue_depth=retry_depth,
        report_queue_depth=report_depth,
    )


@router.get("/ready")
async def readiness_check() -> dict:
    """Simple readiness probe for container orchestration."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict:
    """Simple liveness probe for container orchestration."""
    return {"status": "alive"}
