"""Tests for API endpoints."""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock

import pytest

from vendorsync.routers.sync import range_end
from vendorsync.schemas.sync import SyncSummary
from vendorsync.services.checkpoints import CheckpointStore
from vendorsync.services.job_status import JobStatusService
from vendorsync.services.sync_engine import SyncEngine


class TestHealthEndpoint:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_endpoint(self, client, db_session):
        """Test health reports checkpoints and queue depths."""
        await CheckpointStore(db_session).advance(
            "acct-1", "purchase_orders", datetime(2024, 8, 2, tzinfo=UTC), 12
        )

        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["retry_queue_depth"] == 0
        assert data["report_queue_depth"] == 0
        assert data["streams"][0]["sync_type"] == "purchase_orders"
        assert data["streams"][0]["stream_count"] == 1

    @pytest.mark.asyncio
    async def test_probes(self, client):
        """Test readiness and liveness probes."""
        assert (await client.get("/ready")).json() == {"status": "ready"}
        assert (await client.get("/live")).json() == {"status": "alive"}


class TestRootEndpoint:
    """Tests for root endpoint."""

    @pytest.mark.asyncio
    async def test_root_endpoint(self, client):
        """Test root endpoint returns API info."""
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "VendorSync API"
        assert "version" in data
        assert "docs" in data


class TestSyncEndpoints:
    """Tests for manual sync endpoints."""

    @pytest.mark.asyncio
    async def test_unknown_sync_type(self, client):
        """Test an unknown sync type is a 400."""
        response = await client.post("/api/v1/sync/invoices")

        assert response.status_code == 400
        assert "Unknown sync type" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_sync_without_accounts(self, client):
        """Test a sync with no accounts returns an empty successful summary."""
        response = await client.post("/api/v1/sync/purchase_orders", params={"end": "2024-08-02"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["processed_count"] == 0
        assert data["per_stream_results"] == []

    @pytest.mark.asyncio
    async def test_sync_all_streams(self, client, monkeypatch):
        """Test the ``all`` target runs every stream type with a zero lookback allowed."""
        run_full_sync = AsyncMock(return_value=SyncSummary(success=True))
        monkeypatch.setattr(SyncEngine, "run_full_sync", run_full_sync)

        response = await client.post(
            "/api/v1/sync/all", params={"end": "2024-08-02", "lookback_days": 0}
        )

        assert response.status_code == 200
        run_full_sync.assert_awaited_once_with(
            sync_type=None,
            explicit_end=datetime(2024, 8, 2, tzinfo=UTC),
            default_lookback_days=0,
        )

    def test_range_end_is_midnight_of_date(self):
        """Test a query date becomes the exclusive range end at that day's UTC midnight."""
        assert range_end(date(2024, 8, 2)) == datetime(2024, 8, 2, tzinfo=UTC)
        assert range_end(None) is None

    @pytest.mark.asyncio
    async def test_invalid_end_date(self, client):
        """Test a malformed end date is rejected by validation."""
        response = await client.post("/api/v1/sync/shipments", params={"end": "yesterday"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_drain_retry_queue(self, client):
        """Test draining an empty retry queue."""
        response = await client.post("/api/v1/sync/retry-queue/drain")

        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.asyncio
    async def test_list_checkpoints(self, client, db_session):
        """Test checkpoints are listed."""
        await CheckpointStore(db_session).advance(
            "acct-1", "shipments", datetime(2024, 8, 2, tzinfo=UTC), 3
        )

        response = await client.get("/api/v1/sync/checkpoints")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["stream_id"] == "acct-1"
        assert data[0]["sync_type"] == "shipments"
        assert data[0]["record_count"] == 3


class TestReportEndpoints:
    """Tests for manual report endpoints."""

    @pytest.mark.asyncio
    async def test_unknown_report_kind(self, client):
        """Test an unknown report kind is a 400."""
        response = await client.post("/api/v1/reports/GET_VENDOR_NOPE/sync")

        assert response.status_code == 400
        assert "Unknown report kind" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_report_sync_without_accounts(self, client):
        """Test a report sync with no accounts succeeds with nothing processed."""
        response = await client.post("/api/v1/reports/GET_VENDOR_SALES_REPORT/sync")

        assert response.status_code == 200
        assert response.json()["processed_count"] == 0

    @pytest.mark.asyncio
    async def test_drain_report_queue(self, client):
        """Test draining an empty report queue."""
        response = await client.post("/api/v1/reports/queue/drain", params={"max_items": 10})

        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.asyncio
    async def test_list_sync_states(self, client):
        """Test report sync states list is empty on a fresh database."""
        response = await client.get("/api/v1/reports/sync-states")

        assert response.status_code == 200
        assert response.json() == []


class TestJobsEndpoint:
    """Tests for job status endpoint."""

    @pytest.mark.asyncio
    async def test_job_status(self, client, db_session):
        """Test recorded job outcomes are listed."""
        await JobStatusService(db_session).mark_finished("retry-queue-drain", "retry_queue")

        response = await client.get("/api/v1/jobs/status")

        assert response.status_code == 200
        data = response.json()
        assert data[0]["job_name"] == "retry-queue-drain"
        assert data[0]["last_status"] == "success"
