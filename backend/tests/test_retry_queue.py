"""Tests for the deferred retry queue."""

from datetime import UTC, datetime, timedelta

import pytest

from fakes import FakeVendorClient, terminal, throttled
from vendorsync.schemas.sync import ResultStatus
from vendorsync.services.accounts import AccountClients
from vendorsync.services.checkpoints import CheckpointStore
from vendorsync.services.range_planner import DateRange
from vendorsync.services.retry_queue import RetryQueue
from vendorsync.services.vendor_client import VendorPage

NOW = datetime(2024, 8, 3, 12, 0, tzinfo=UTC)
SEGMENT = DateRange(datetime(2024, 7, 26, tzinfo=UTC), datetime(2024, 8, 2, tzinfo=UTC))


def resolver(db, settings, fake):
    return AccountClients(db, settings, lambda account: fake).client_for


class TestRetryQueue:
    """Tests for RetryQueue."""

    @pytest.mark.asyncio
    async def test_enqueue_sets_delay(self, db_session, test_settings):
        """Test a new entry is due after the fixed delay with zero attempts."""
        queue = RetryQueue(db_session, test_settings)

        entry = await queue.enqueue("acct-1", "purchase_orders", SEGMENT, now=NOW)

        assert entry.attempts == 0
        assert entry.retry_at == NOW + timedelta(minutes=test_settings.retry_queue_delay_minutes)
        assert await queue.due(NOW) == []
        assert len(await queue.due(NOW + timedelta(minutes=10))) == 1

    @pytest.mark.asyncio
    async def test_drain_success_advances_checkpoint_and_removes(
        self, db_session, test_settings, account, sample_purchase_orders
    ):
        """Test a successful retry advances the checkpoint and deletes the entry."""
        queue = RetryQueue(db_session, test_settings)
        await queue.enqueue("acct-1", "purchase_orders", SEGMENT, now=NOW)
        fake = FakeVendorClient(pages=[VendorPage(items=sample_purchase_orders)])

        summary = await queue.drain(
            resolver(db_session, test_settings, fake), now=NOW + timedelta(minutes=11)
        )

        assert summary.success is True
        assert summary.per_stream_results[0].status == ResultStatus.SYNCED
        assert summary.per_stream_results[0].record_count == 2
        assert await queue.count() == 0
        assert await CheckpointStore(db_session).get_last_end_at(
            "acct-1", "purchase_orders"
        ) == SEGMENT.end

    @pytest.mark.asyncio
    async def test_renewed_throttle_requeues_then_drops(self, db_session, test_settings, account):
        """Test throttled retries are rescheduled until the attempt ceiling."""
        queue = RetryQueue(db_session, test_settings)
        await queue.enqueue("acct-1", "purchase_orders", SEGMENT, now=NOW)
        fake = FakeVendorClient(page_fn=lambda start, end, token: throttled())
        client_for = resolver(db_session, test_settings, fake)

        now = NOW
        statuses = []
        for _ in range(test_settings.retry_queue_max_attempts):
            now += timedelta(minutes=11)
            summary = await queue.drain(client_for, now=now)
            statuses.append(summary.per_stream_results[0].status)

        assert statuses == [ResultStatus.REQUEUED, ResultStatus.REQUEUED, ResultStatus.DROPPED]
        assert await queue.count() == 0
        assert await CheckpointStore(db_session).get("acct-1", "purchase_orders") is None

    @pytest.mark.asyncio
    async def test_requeue_pushes_retry_at_and_counts_attempts(
        self, db_session, test_settings, account
    ):
        """Test a requeued entry gets a new retry_at and one more attempt."""
        queue = RetryQueue(db_session, test_settings)
        await queue.enqueue("acct-1", "purchase_orders", SEGMENT, now=NOW)
        fake = FakeVendorClient(page_fn=lambda start, end, token: throttled())
        drain_at = NOW + timedelta(minutes=11)

        await queue.drain(resolver(db_session, test_settings, fake), now=drain_at)

        assert await queue.due(drain_at) == []
        entries = await queue.due(drain_at + timedelta(minutes=10))
        assert len(entries) == 1
        assert entries[0].attempts == 1

    @pytest.mark.asyncio
    async def test_non_throttle_error_drops(self, db_session, test_settings, account):
        """Test a terminal vendor error removes the entry."""
        queue = RetryQueue(db_session, test_settings)
        await queue.enqueue("acct-1", "purchase_orders", SEGMENT, now=NOW)
        fake = FakeVendorClient(pages=[terminal()])

        summary = await queue.drain(
            resolver(db_session, test_settings, fake), now=NOW + timedelta(minutes=11)
        )

        assert summary.success is False
        assert summary.per_stream_results[0].status == ResultStatus.DROPPED
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_missing_credentials_drops(self, db_session, test_settings):
        """Test an entry for an unknown account is dropped."""
        queue = RetryQueue(db_session, test_settings)
        await queue.enqueue("acct-gone", "purchase_orders", SEGMENT, now=NOW)

        summary = await queue.drain(
            resolver(db_session, test_settings, FakeVendorClient()),
            now=NOW + timedelta(minutes=11),
        )

        assert summary.per_stream_results[0].status == ResultStatus.DROPPED
        assert "acct-gone" in summary.per_stream_results[0].error
        assert await queue.count() == 0

    @pytest.mark.asyncio
    async def test_drain_filters_by_sync_type(self, db_session, test_settings, account):
        """Test draining one sync type leaves other entries queued."""
        queue = RetryQueue(db_session, test_settings)
        await queue.enqueue("acct-1", "purchase_orders", SEGMENT, now=NOW)
        await queue.enqueue("acct-1", "shipments", SEGMENT, now=NOW)

        summary = await queue.drain(
            resolver(db_session, test_settings, FakeVendorClient()),
            now=NOW + timedelta(minutes=11),
            sync_type="shipments",
        )

        assert summary.processed_count == 1
        assert await queue.count() == 1

    @pytest.mark.asyncio
    async def test_empty_queue(self, db_session, test_settings):
        """Test draining an empty queue succeeds with nothing processed."""
        summary = await RetryQueue(db_session, test_settings).drain(
            resolver(db_session, test_settings, FakeVendorClient()), now=NOW
        )

        assert summary.success is True
        assert summary.processed_count == 0
