"""Range planning: what to pull next for a stream, split into legal segments."""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from vendorsync.services.checkpoints import CheckpointStore, ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateRange:
    """Half-open ``[start, end)`` interval."""

    start: datetime
    end: datetime

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()}~{self.end.isoformat()}"


def default_end(now: datetime | None = None) -> datetime:
    """One full day of lag: vendor data for the last 24 hours may still change."""
    now = now or datetime.now(UTC)
    return ensure_utc(now) - timedelta(days=1)


def split_into_segments(start: datetime, end: datetime, max_span_days: int) -> list[DateRange]:
    """
    Split ``[start, end)`` into contiguous segments no wider than ``max_span_days``.

    The segments cover the range exactly; a zero-length remainder is never
    emitted and an empty range yields no segments.
    """
    if max_span_days <= 0:
        raise ValueError("max_span_days must be positive")

    span = timedelta(days=max_span_days)
    segments: list[DateRange] = []
    cursor = start

    while cursor < end:
        segment_end = min(cursor + span, end)
        segments.append(DateRange(start=cursor, end=segment_end))
        cursor = segment_end

    return segments


class RangePlanner:
    """Computes the pull range for a stream from its checkpoint."""

    def __init__(self, checkpoints: CheckpointStore):
        self.checkpoints = checkpoints

    async def plan_range(
        self,
        stream_id: str,
        sync_type: str,
        default_lookback_days: int,
        explicit_end: datetime | None = None,
        now: datetime | None = None,
    ) -> DateRange:
        """
        Plan the next range for a stream.

        Args:
            stream_id: Account the stream belongs to
            sync_type: Data kind of the stream
            default_lookback_days: How far back to start when there is no checkpoint
            explicit_end: Caller-supplied end (defaults to yesterday)
            now: Clock override

        Returns:
            DateRange; empty (``start >= end``) when there is nothing to do.
            An ``explicit_end`` at or before the checkpoint is a no-op, not a rewind.
        """
        end = ensure_utc(explicit_end) if explicit_end else default_end(now)
        last_end_at = await self.checkpoints.get_last_end_at(stream_id, sync_type)

        if last_end_at is not None:
            start = last_end_at
        else:
            start = end - timedelta(days=default_lookback_days)
            logger.info(
                "No checkpoint for %s/%s; seeding with last %d days (since=%s)",
                stream_id,
                sync_type,
                default_lookback_days,
                start,
            )

        return DateRange(start=start, end=end)


def plan_report_days(
    last_data_date: date | None,
    lookback_days: int,
    explicit_end: date | None = None,
    today: date | None = None,
) -> list[date]:
    """
    Reporting days still to fetch, oldest first (both ends inclusive).

    Starts the day after the last saved day, or ``lookback_days`` before the
    end; the end defaults to yesterday.
    """
    today = today or datetime.now(UTC).date()
    end = explicit_end or today - timedelta(days=1)
    if last_data_date is not None:
        start = last_data_date + timedelta(days=1)
    else:
        start = end - timedelta(days=lookback_days)

    days: list[date] = []
    cursor = start
    while cursor <= end:
        days.append(cursor)
        cursor += timedelta(days=1)
    return days
