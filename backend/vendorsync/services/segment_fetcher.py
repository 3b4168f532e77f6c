"""Segment fetcher: pages through one bounded time segment of a stream."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.config import Settings, get_settings
from vendorsync.services.range_planner import DateRange
from vendorsync.services.record_store import RecordStore
from vendorsync.services.streams import StreamDefinition
from vendorsync.services.throttle import ThrottleExhaustedError, call_with_throttle_retry
from vendorsync.services.vendor_client import VendorClient, VendorPage

logger = logging.getLogger(__name__)


def format_instant(value: datetime) -> str:
    """ISO 8601 with a ``Z`` suffix, as the vendor expects."""
    return value.isoformat().replace("+00:00", "Z")


@dataclass
class SegmentResult:
    """
    Outcome of fetching one segment.

    ``throttle_exhausted`` means the segment was abandoned part-way and must
    be deferred; records already upserted stay (replay is idempotent).
    """

    record_count: int = 0
    pages: int = 0
    skipped: int = 0
    throttle_exhausted: bool = False


class SegmentFetcher:
    """
    Drives the ``nextToken`` pagination loop for a segment.

    Features:
    - One page in flight: each page is upserted and committed before the next request
    - Fixed delay between pages, a larger one after the last page
    - Throttled requests retried in-line with exponential backoff
    """

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.record_store = RecordStore(db)

    async def _persist_page(
        self, stream: StreamDefinition, stream_id: str, page: VendorPage
    ) -> tuple[int, int]:
        """Upsert a page's records; returns (persisted, skipped)."""
        persisted = 0
        skipped = 0
        for item in page.items:
            natural_key = stream.natural_key(item)
            result = await self.record_store.upsert(stream.sync_type, stream_id, natural_key, item)
            if result.ok:
                persisted += 1
            else:
                skipped += 1
                logger.warning(
                    f"Skipped {stream.sync_type} record for {stream_id} "
                    f"(key={result.natural_key}): {result.error}"
                )
        await self.db.commit()
        return persisted, skipped

    async def fetch_segment(
        self,
        client: VendorClient,
        stream: StreamDefinition,
        stream_id: str,
        segment: DateRange,
    ) -> SegmentResult:
        """
        Pull and persist every page of one segment.

        Args:
            client: Vendor client for the stream's account
            stream: Stream definition (operation, natural key)
            stream_id: Account the records belong to
            segment: Half-open interval to pull

        Returns:
            SegmentResult; ``throttle_exhausted`` is set instead of raising
            when the vendor keeps throttling

        Raises:
            VendorClientError: non-throttle vendor errors (not retried here)
        """
        result = SegmentResult()
        range_start = format_instant(segment.start)
        range_end = format_instant(segment.end)
        label = f"{stream.operation.name} {stream_id} {range_start}~{range_end}"
        next_token: str | None = None

        logger.info(f"Fetching segment {label}")

        while True:
            token = next_token

            async def request_page() -> VendorPage:
                return await client.list_page(stream.operation, range_start, range_end, token)

            try:
                page = await call_with_throttle_retry(
                    request_page,
                    max_retries=self.settings.throttle_retry_max,
                    initial_delay=self.settings.throttle_initial_delay_seconds,
                    label=label,
                )
            except ThrottleExhaustedError:
                result.throttle_exhausted = True
                logger.warning(
                    f"Segment {label} abandoned after {result.pages} pages "
                    f"({result.record_count} records kept)"
                )
                return result

            persisted, skipped = await self._persist_page(stream, stream_id, page)
            result.pages += 1
            result.record_count += persisted
            result.skipped += skipped

            next_token = page.next_token
            if next_token:
                await asyncio.sleep(self.settings.page_delay_seconds)
            else:
                await asyncio.sleep(self.settings.final_page_delay_seconds)
                break

        logger.info(f"Segment {label} complete: {result.record_count} records, {result.pages} pages")
        return result
