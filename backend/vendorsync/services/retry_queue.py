"""Deferred retry queue for segments that exhausted in-line throttle retries."""

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.config import Settings, get_settings
from vendorsync.models import RetrySegment
from vendorsync.schemas.sync import ResultStatus, StreamResult, SyncSummary
from vendorsync.services.checkpoints import CheckpointStore, ensure_utc
from vendorsync.services.range_planner import DateRange
from vendorsync.services.segment_fetcher import SegmentFetcher
from vendorsync.services.streams import get_stream
from vendorsync.services.vendor_client import (
    MissingCredentialsError,
    VendorClient,
    VendorClientError,
)

logger = logging.getLogger(__name__)

ClientResolver = Callable[[str], Awaitable[VendorClient]]


class RetryQueue:
    """
    Durable queue of deferred segments.

    Entries wait ``retry_queue_delay_minutes`` between attempts and are
    dropped once ``retry_queue_max_attempts`` is reached.
    """

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    @property
    def delay(self) -> timedelta:
        return timedelta(minutes=self.settings.retry_queue_delay_minutes)

    async def enqueue(
        self,
        stream_id: str,
        sync_type: str,
        segment: DateRange,
        now: datetime | None = None,
    ) -> RetrySegment:
        """Defer a segment; it becomes due after the fixed delay."""
        now = now or datetime.now(UTC)
        entry = RetrySegment(
            stream_id=stream_id,
            sync_type=sync_type,
            segment_start=segment.start,
            segment_end=segment.end,
            retry_at=now + self.delay,
            attempts=0,
        )
        self.db.add(entry)
        await self.db.commit()
        logger.warning(
            f"Segment deferred for {self.settings.retry_queue_delay_minutes} minutes: "
            f"{stream_id}/{sync_type} {segment}"
        )
        return entry

    async def due(self, now: datetime, sync_type: str | None = None) -> list[RetrySegment]:
        """Entries whose ``retry_at`` has passed, oldest first."""
        query = select(RetrySegment).where(RetrySegment.retry_at <= now)
        if sync_type:
            query = query.where(RetrySegment.sync_type == sync_type)
        query = query.order_by(RetrySegment.retry_at, RetrySegment.id)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.db.execute(select(func.count(RetrySegment.id)))
        return result.scalar() or 0

    async def _remove(self, entry_id: int) -> None:
        await self.db.execute(delete(RetrySegment).where(RetrySegment.id == entry_id))
        await self.db.commit()

    async def _reschedule(self, entry_id: int, attempts: int, now: datetime) -> None:
        await self.db.execute(
            update(RetrySegment)
            .where(RetrySegment.id == entry_id)
            .values(retry_at=now + self.delay, attempts=attempts)
        )
        await self.db.commit()

    async def drain(
        self,
        client_for: ClientResolver,
        now: datetime | None = None,
        sync_type: str | None = None,
    ) -> SyncSummary:
        """
        Re-run every due segment.

        Success advances the checkpoint and removes the entry; renewed
        throttling reschedules it until the attempt ceiling; any other error
        (missing credentials included) removes it as a permanent failure.
        Failures are isolated per entry.
        """
        now = now or datetime.now(UTC)
        entries = await self.due(now, sync_type)
        if not entries:
            return SyncSummary(success=True, message="No due retry segments")

        logger.info(f"Draining {len(entries)} deferred segments")
        fetcher = SegmentFetcher(self.db, self.settings)
        checkpoints = CheckpointStore(self.db)
        results: list[StreamResult] = []

        # Plain values only: a rollback expires loaded instances
        snapshots = [
            (
                entry.id,
                entry.stream_id,
                entry.sync_type,
                entry.attempts,
                DateRange(ensure_utc(entry.segment_start), ensure_utc(entry.segment_end)),
            )
            for entry in entries
        ]

        for entry_id, stream_id, kind, attempts, segment in snapshots:
            label = f"{stream_id}/{kind} {segment}"

            try:
                stream = get_stream(kind)
                client = await client_for(stream_id)
                outcome = await fetcher.fetch_segment(client, stream, stream_id, segment)
            except MissingCredentialsError as e:
                await self._remove(entry_id)
                logger.error(f"Retry segment {label} dropped, no credentials: {e}")
                results.append(
                    StreamResult(
                        stream_id=stream_id, kind=kind, status=ResultStatus.DROPPED, error=str(e)
                    )
                )
                continue
            except (VendorClientError, ValueError) as e:
                await self._remove(entry_id)
                logger.error(f"Retry segment {label} failed permanently: {e}")
                results.append(
                    StreamResult(
                        stream_id=stream_id, kind=kind, status=ResultStatus.DROPPED, error=str(e)
                    )
                )
                continue
            except Exception as e:
                await self.db.rollback()
                await self._remove(entry_id)
                logger.error(f"Retry segment {label} failed permanently: {e}", exc_info=True)
                results.append(
                    StreamResult(
                        stream_id=stream_id, kind=kind, status=ResultStatus.DROPPED, error=str(e)
                    )
                )
                continue

            if outcome.throttle_exhausted:
                if attempts + 1 < self.settings.retry_queue_max_attempts:
                    await self._reschedule(entry_id, attempts + 1, now)
                    logger.warning(
                        f"Retry segment {label} throttled again, "
                        f"attempts={attempts + 1}, retry in {self.delay}"
                    )
                    results.append(
                        StreamResult(
                            stream_id=stream_id,
                            kind=kind,
                            status=ResultStatus.REQUEUED,
                            record_count=outcome.record_count,
                            deferred_count=1,
                        )
                    )
                else:
                    await self._remove(entry_id)
                    logger.error(f"Retry segment {label} dropped after {attempts + 1} attempts")
                    results.append(
                        StreamResult(
                            stream_id=stream_id,
                            kind=kind,
                            status=ResultStatus.DROPPED,
                            record_count=outcome.record_count,
                            error="max attempts exceeded",
                        )
                    )
                continue

            await checkpoints.advance(stream_id, kind, segment.end, outcome.record_count)
            await self._remove(entry_id)
            logger.info(f"Retry segment {label} succeeded: {outcome.record_count} records")
            results.append(
                StreamResult(
                    stream_id=stream_id,
                    kind=kind,
                    status=ResultStatus.SYNCED,
                    record_count=outcome.record_count,
                )
            )

        return SyncSummary.from_results(results)
