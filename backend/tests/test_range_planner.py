"""Tests for range planning and segment splitting."""

from datetime import UTC, date, datetime, timedelta

import pytest

from vendorsync.services.checkpoints import CheckpointStore
from vendorsync.services.range_planner import (
    DateRange,
    RangePlanner,
    default_end,
    plan_report_days,
    split_into_segments,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


class TestSplitIntoSegments:
    """Tests for split_into_segments."""

    def test_two_week_range_splits_into_two_segments(self):
        """Test a 14-day range splits into two 7-day segments."""
        segments = split_into_segments(utc(2024, 7, 19), utc(2024, 8, 2), 7)

        assert segments == [
            DateRange(utc(2024, 7, 19), utc(2024, 7, 26)),
            DateRange(utc(2024, 7, 26), utc(2024, 8, 2)),
        ]

    @pytest.mark.parametrize(
        "start,end,span",
        [
            (utc(2024, 1, 1), utc(2024, 1, 1, 6), 7),
            (utc(2024, 1, 1), utc(2024, 3, 17, 13, 30), 7),
            (utc(2024, 2, 27, 23), utc(2024, 3, 2, 1), 1),
            (utc(2023, 12, 31), utc(2024, 12, 31), 15),
        ],
    )
    def test_segments_are_contiguous_and_bounded(self, start, end, span):
        """Test segments cover [start, end) exactly, each within the span."""
        segments = split_into_segments(start, end, span)

        assert segments[0].start == start
        assert segments[-1].end == end
        for previous, current in zip(segments, segments[1:]):
            assert previous.end == current.start
        for segment in segments:
            assert segment.start < segment.end
            assert segment.end - segment.start <= timedelta(days=span)

    def test_exact_multiple_has_no_empty_remainder(self):
        """Test no zero-length final segment is emitted."""
        segments = split_into_segments(utc(2024, 1, 1), utc(2024, 1, 22), 7)

        assert len(segments) == 3
        assert all(not s.is_empty for s in segments)

    def test_empty_range_yields_no_segments(self):
        """Test start >= end yields nothing."""
        assert split_into_segments(utc(2024, 1, 2), utc(2024, 1, 1), 7) == []
        assert split_into_segments(utc(2024, 1, 1), utc(2024, 1, 1), 7) == []

    def test_non_positive_span_rejected(self):
        """Test a zero span is refused."""
        with pytest.raises(ValueError):
            split_into_segments(utc(2024, 1, 1), utc(2024, 1, 2), 0)


class TestRangePlanner:
    """Tests for RangePlanner.plan_range."""

    @pytest.mark.asyncio
    async def test_no_checkpoint_uses_lookback(self, db_session):
        """Test an empty checkpoint seeds start from the lookback."""
        planner = RangePlanner(CheckpointStore(db_session))

        planned = await planner.plan_range(
            "acct-1", "purchase_orders", 14, explicit_end=utc(2024, 8, 2)
        )

        assert planned == DateRange(utc(2024, 7, 19), utc(2024, 8, 2))
        assert split_into_segments(planned.start, planned.end, 7) == [
            DateRange(utc(2024, 7, 19), utc(2024, 7, 26)),
            DateRange(utc(2024, 7, 26), utc(2024, 8, 2)),
        ]

    @pytest.mark.asyncio
    async def test_checkpoint_is_start(self, db_session):
        """Test an existing checkpoint becomes the range start."""
        checkpoints = CheckpointStore(db_session)
        await checkpoints.advance("acct-1", "purchase_orders", utc(2024, 7, 26), 3)

        planned = await RangePlanner(checkpoints).plan_range(
            "acct-1", "purchase_orders", 365, explicit_end=utc(2024, 8, 2)
        )

        assert planned.start == utc(2024, 7, 26)
        assert planned.end == utc(2024, 8, 2)

    @pytest.mark.asyncio
    async def test_default_end_is_yesterday(self, db_session, sample_datetime):
        """Test the end defaults to one day before now."""
        planned = await RangePlanner(CheckpointStore(db_session)).plan_range(
            "acct-1", "shipments", 60, now=sample_datetime
        )

        assert planned.end == sample_datetime - timedelta(days=1)
        assert planned.start == planned.end - timedelta(days=60)

    @pytest.mark.asyncio
    async def test_explicit_end_before_checkpoint_is_empty(self, db_session):
        """Test an end behind the checkpoint is a no-op, not a rewind."""
        checkpoints = CheckpointStore(db_session)
        await checkpoints.advance("acct-1", "purchase_orders", utc(2024, 8, 2), 3)

        planned = await RangePlanner(checkpoints).plan_range(
            "acct-1", "purchase_orders", 14, explicit_end=utc(2024, 7, 1)
        )

        assert planned.is_empty
        assert split_into_segments(planned.start, planned.end, 7) == []


class TestPlanReportDays:
    """Tests for plan_report_days."""

    def test_no_state_uses_lookback(self):
        """Test days start lookback days before yesterday."""
        days = plan_report_days(None, 3, today=date(2024, 8, 3))

        assert days == [date(2024, 7, 30), date(2024, 7, 31), date(2024, 8, 1), date(2024, 8, 2)]

    def test_resumes_after_last_saved_day(self):
        """Test days resume the day after the last saved one."""
        days = plan_report_days(date(2024, 8, 1), 90, today=date(2024, 8, 3))

        assert days == [date(2024, 8, 2)]

    def test_up_to_date_yields_nothing(self):
        """Test nothing is planned once yesterday is saved."""
        assert plan_report_days(date(2024, 8, 2), 90, today=date(2024, 8, 3)) == []

    def test_explicit_end(self):
        """Test an explicit end is inclusive."""
        days = plan_report_days(date(2024, 7, 29), 90, explicit_end=date(2024, 7, 31))

        assert days == [date(2024, 7, 30), date(2024, 7, 31)]


def test_default_end():
    """Test default_end lags now by one day."""
    assert default_end(utc(2024, 8, 3, 9)) == utc(2024, 8, 2, 9)
