"""Tests for checkpoint and report sync state stores."""

from datetime import UTC, date, datetime

import pytest

from vendorsync.services.checkpoints import CheckpointStore, ReportSyncStateStore, ensure_utc


class TestCheckpointStore:
    """Tests for CheckpointStore."""

    @pytest.mark.asyncio
    async def test_first_advance_creates_checkpoint(self, db_session):
        """Test the first successful segment creates the checkpoint."""
        store = CheckpointStore(db_session)

        advanced = await store.advance("acct-1", "purchase_orders", datetime(2024, 7, 26, tzinfo=UTC), 5)

        assert advanced is True
        assert await store.get_last_end_at("acct-1", "purchase_orders") == datetime(
            2024, 7, 26, tzinfo=UTC
        )
        checkpoint = await store.get("acct-1", "purchase_orders")
        assert checkpoint.record_count == 5

    @pytest.mark.asyncio
    async def test_advance_never_moves_backwards(self, db_session):
        """Test an out-of-order earlier segment cannot lower the checkpoint."""
        store = CheckpointStore(db_session)
        await store.advance("acct-1", "purchase_orders", datetime(2024, 8, 2, tzinfo=UTC), 3)

        advanced = await store.advance(
            "acct-1", "purchase_orders", datetime(2024, 7, 26, tzinfo=UTC), 9
        )

        assert advanced is False
        assert await store.get_last_end_at("acct-1", "purchase_orders") == datetime(
            2024, 8, 2, tzinfo=UTC
        )
        checkpoint = await store.get("acct-1", "purchase_orders")
        assert checkpoint.record_count == 3

    @pytest.mark.asyncio
    async def test_checkpoints_are_per_stream_and_type(self, db_session):
        """Test checkpoints are keyed by (stream, sync type)."""
        store = CheckpointStore(db_session)
        await store.advance("acct-1", "purchase_orders", datetime(2024, 8, 2, tzinfo=UTC), 1)
        await store.advance("acct-1", "shipments", datetime(2024, 7, 1, tzinfo=UTC), 1)

        assert await store.get_last_end_at("acct-2", "purchase_orders") is None
        assert await store.get_last_end_at("acct-1", "shipments") == datetime(2024, 7, 1, tzinfo=UTC)
        assert len(await store.list_all()) == 2


class TestReportSyncStateStore:
    """Tests for ReportSyncStateStore."""

    @pytest.mark.asyncio
    async def test_advance_is_monotonic(self, db_session):
        """Test the report state only moves forward."""
        store = ReportSyncStateStore(db_session)
        kind = "GET_VENDOR_SALES_REPORT"

        await store.advance("acct-1", kind, "ATVPDKIKX0DER", date(2024, 8, 2), 10)
        await store.advance("acct-1", kind, "ATVPDKIKX0DER", date(2024, 7, 30), 4)
        await db_session.commit()

        assert await store.get_last_data_date("acct-1", kind, "ATVPDKIKX0DER") == date(2024, 8, 2)
        assert await store.get_last_data_date("acct-1", kind, "A1F83G8C2ARO7P") is None


def test_ensure_utc_naive_and_aware():
    """Test naive values are read as UTC and aware values converted."""
    naive = datetime(2024, 7, 26, 0, 0)
    assert ensure_utc(naive) == datetime(2024, 7, 26, tzinfo=UTC)
    assert ensure_utc(naive).tzinfo is UTC
