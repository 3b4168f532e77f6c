"""Incremental sync engine for vendor list streams."""

import asyncio
import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.config import Settings, get_settings
from vendorsync.models import VendorAccount
from vendorsync.schemas.sync import ResultStatus, StreamResult, SyncSummary
from vendorsync.services.accounts import AccountClients, ClientFactory, get_active_accounts
from vendorsync.services.checkpoints import CheckpointStore
from vendorsync.services.range_planner import RangePlanner, split_into_segments
from vendorsync.services.retry_queue import RetryQueue
from vendorsync.services.segment_fetcher import SegmentFetcher
from vendorsync.services.streams import STREAMS, StreamDefinition, get_stream
from vendorsync.services.vendor_client import MissingCredentialsError, VendorClientError

logger = logging.getLogger(__name__)


class SyncEngine:
    """
    Checkpointed incremental sync of the vendor list streams.

    Features:
    - Ranges planned from checkpoints and split into legal segments
    - Checkpoint advanced only after a segment is fully persisted
    - Throttle-exhausted segments handed to the deferred retry queue
    - Due deferred segments drained before fresh ranges are planned
    - Failures isolated per stream
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.accounts = AccountClients(db, self.settings, client_factory)
        self.checkpoints = CheckpointStore(db)
        self.planner = RangePlanner(self.checkpoints)
        self.fetcher = SegmentFetcher(db, self.settings)
        self.retry_queue = RetryQueue(db, self.settings)

    async def drain_retry_queue(
        self, sync_type: str | None = None, now: datetime | None = None
    ) -> SyncSummary:
        """Drain due deferred segments (all sync types unless one is given)."""
        return await self.retry_queue.drain(self.accounts.client_for, now=now, sync_type=sync_type)

    async def sync_stream(
        self,
        account: VendorAccount,
        stream: StreamDefinition,
        explicit_end: datetime | None = None,
        default_lookback_days: int | None = None,
        now: datetime | None = None,
    ) -> StreamResult:
        """
        Sync one stream from its checkpoint up to the planned end.

        Stops at the first throttle-exhausted segment, which is deferred;
        later segments are left for the next pass so the checkpoint never
        jumps over a gap.

        Raises:
            VendorClientError: non-throttle vendor errors
        """
        stream_id = account.id
        sync_type = stream.sync_type.value
        if default_lookback_days is not None:
            lookback = default_lookback_days
        else:
            lookback = stream.lookback_days(self.settings)

        date_range = await self.planner.plan_range(
            stream_id, sync_type, lookback, explicit_end=explicit_end, now=now
        )
        if date_range.is_empty:
            logger.info(f"{stream_id}/{sync_type}: nothing to do ({date_range})")
            return StreamResult(
                stream_id=stream_id,
                kind=sync_type,
                status=ResultStatus.NOTHING_TO_DO,
                message="No new time range to pull",
            )

        client = self.accounts.client_for_account(account)
        segments = split_into_segments(
            date_range.start, date_range.end, self.settings.max_segment_span_days
        )
        logger.info(f"{stream_id}/{sync_type}: {len(segments)} segments over {date_range}")

        total_records = 0
        for index, segment in enumerate(segments):
            outcome = await self.fetcher.fetch_segment(client, stream, stream_id, segment)
            total_records += outcome.record_count

            if outcome.throttle_exhausted:
                await self.retry_queue.enqueue(stream_id, sync_type, segment, now=now)
                return StreamResult(
                    stream_id=stream_id,
                    kind=sync_type,
                    status=ResultStatus.DEFERRED,
                    record_count=total_records,
                    deferred_count=1,
                    message=(
                        f"Segment {segment} deferred after throttling; retry in about "
                        f"{self.settings.retry_queue_delay_minutes} minutes"
                    ),
                )

            await self.checkpoints.advance(stream_id, sync_type, segment.end, outcome.record_count)

            if index < len(segments) - 1:
                await asyncio.sleep(self.settings.segment_delay_seconds)

        return StreamResult(
            stream_id=stream_id,
            kind=sync_type,
            status=ResultStatus.SYNCED,
            record_count=total_records,
        )

    async def run_full_sync(
        self,
        sync_type: str | None = None,
        explicit_end: datetime | None = None,
        default_lookback_days: int | None = None,
        now: datetime | None = None,
    ) -> SyncSummary:
        """
        Full sync pass over every active account.

        Due deferred segments are drained first, then each (account, stream)
        pair is synced from its checkpoint.

        Args:
            sync_type: Restrict the pass to one stream type (default: all)
            explicit_end: End of the range (default: yesterday)
            default_lookback_days: Lookback when a stream has no checkpoint
            now: Clock override

        Returns:
            SyncSummary; ``success`` is False when any stream failed or deferred
        """
        streams = [get_stream(sync_type)] if sync_type else list(STREAMS.values())
        now = now or datetime.now(UTC)

        queue_summary = await self.drain_retry_queue(sync_type=sync_type, now=now)

        accounts = await get_active_accounts(self.db)
        if not accounts:
            return SyncSummary(
                success=queue_summary.success,
                queue=queue_summary,
                message="No authorized vendor accounts",
            )

        # Ids only: a rollback expires loaded instances
        account_ids = [account.id for account in accounts]
        results: list[StreamResult] = []
        for stream_id in account_ids:
            for stream in streams:
                try:
                    account = await self.accounts.get_account(stream_id)
                    result = await self.sync_stream(
                        account, stream, explicit_end, default_lookback_days, now
                    )
                except MissingCredentialsError as e:
                    logger.error(f"{stream_id}/{stream.sync_type}: {e}")
                    result = StreamResult(
                        stream_id=stream_id,
                        kind=stream.sync_type.value,
                        status=ResultStatus.FAILED,
                        error=str(e),
                    )
                except VendorClientError as e:
                    logger.error(
                        f"{stream_id}/{stream.sync_type} sync failed ({e.kind}): {e} "
                        f"vendorRequestId={e.vendor_request_id}"
                    )
                    result = StreamResult(
                        stream_id=stream_id,
                        kind=stream.sync_type.value,
                        status=ResultStatus.FAILED,
                        error=str(e),
                    )
                except Exception as e:
                    await self.db.rollback()
                    logger.error(f"{stream_id}/{stream.sync_type} sync failed: {e}", exc_info=True)
                    result = StreamResult(
                        stream_id=stream_id,
                        kind=stream.sync_type.value,
                        status=ResultStatus.FAILED,
                        error=str(e),
                    )
                results.append(result)

        summary = SyncSummary.from_results(results, queue=queue_summary)
        summary.success = summary.success and queue_summary.success
        logger.info(
            f"Full sync done: {summary.processed_count} streams, "
            f"{sum(r.record_count for r in results)} records, {summary.deferred_count} deferred"
        )
        return summary
