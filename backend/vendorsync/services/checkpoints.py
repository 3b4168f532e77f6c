"""Checkpoint store for per-stream sync progress."""

import logging
from datetime import UTC, date, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.database import upsert_statement
from vendorsync.models import ReportSyncState, SyncCheckpoint

logger = logging.getLogger(__name__)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize a datetime to aware UTC (SQLite hands back naive values)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class CheckpointStore:
    """
    Durable high-water marks keyed by (stream_id, sync_type).

    Advancing is a compare-and-set: the stored ``last_end_at`` only ever
    moves forward, so a late, out-of-order segment cannot lower it.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, stream_id: str, sync_type: str) -> SyncCheckpoint | None:
        result = await self.db.execute(
            select(SyncCheckpoint)
            .where(
                SyncCheckpoint.stream_id == stream_id,
                SyncCheckpoint.sync_type == sync_type,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_last_end_at(self, stream_id: str, sync_type: str) -> datetime | None:
        """Get the exclusive lower bound of the next pull, if any."""
        checkpoint = await self.get(stream_id, sync_type)
        return ensure_utc(checkpoint.last_end_at) if checkpoint else None

    async def advance(
        self,
        stream_id: str,
        sync_type: str,
        segment_end: datetime,
        record_count: int,
    ) -> bool:
        """
        Move the checkpoint to ``segment_end`` if that is later than the stored value.

        Commits immediately so a completed segment is durable before the next
        one starts.

        Returns:
            True if the checkpoint was created or moved forward
        """
        segment_end = ensure_utc(segment_end)
        now = datetime.now(UTC)

        stmt = upsert_statement(self.db, SyncCheckpoint).values(
            stream_id=stream_id,
            sync_type=sync_type,
            last_end_at=segment_end,
            last_sync_at=now,
            record_count=record_count,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["stream_id", "sync_type"],
            set_={
                "last_end_at": stmt.excluded.last_end_at,
                "last_sync_at": stmt.excluded.last_sync_at,
                "record_count": stmt.excluded.record_count,
            },
            where=SyncCheckpoint.last_end_at < stmt.excluded.last_end_at,
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        advanced = (result.rowcount or 0) > 0
        if advanced:
            logger.info(f"Checkpoint {stream_id}/{sync_type} advanced to {segment_end.isoformat()}")
        else:
            logger.info(
                f"Checkpoint {stream_id}/{sync_type} kept; {segment_end.isoformat()} is not later"
            )
        return advanced

    async def list_all(self) -> list[SyncCheckpoint]:
        result = await self.db.execute(
            select(SyncCheckpoint)
            .order_by(SyncCheckpoint.stream_id, SyncCheckpoint.sync_type)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())


class ReportSyncStateStore:
    """Per-day progress of date-partitioned reports."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_last_data_date(
        self, stream_id: str, report_kind: str, partition_key: str
    ) -> date | None:
        result = await self.db.execute(
            select(ReportSyncState.last_data_end_at).where(
                ReportSyncState.stream_id == stream_id,
                ReportSyncState.report_kind == report_kind,
                ReportSyncState.partition_key == partition_key,
            )
        )
        return result.scalar_one_or_none()

    async def advance(
        self,
        stream_id: str,
        report_kind: str,
        partition_key: str,
        data_date: date,
        record_count: int,
    ) -> None:
        """Record ``data_date`` as saved; never moves the state backwards."""
        stmt = upsert_statement(self.db, ReportSyncState).values(
            stream_id=stream_id,
            report_kind=report_kind,
            partition_key=partition_key,
            last_data_end_at=data_date,
            record_count=record_count,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["stream_id", "report_kind", "partition_key"],
            set_={
                "last_data_end_at": stmt.excluded.last_data_end_at,
                "record_count": stmt.excluded.record_count,
                "updated_at": func.now(),
            },
            where=ReportSyncState.last_data_end_at < stmt.excluded.last_data_end_at,
        )
        await self.db.execute(stmt)

    async def list_all(self) -> list[ReportSyncState]:
        result = await self.db.execute(
            select(ReportSyncState)
            .order_by(ReportSyncState.stream_id, ReportSyncState.report_kind)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
