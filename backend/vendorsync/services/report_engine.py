"""
Report job engine for asynchronous vendor reports.

Each report request moves through SUBMITTED -> POLLING -> DONE, CANCELLED
or FATAL. A request still processing when the polling budget runs out is
parked in the ``report_jobs`` queue (QUEUED_PENDING) and re-polled by a
periodic drain.

Date-range reports are requested one reporting day at a time; each saved day
advances the report's sync state.
"""

import asyncio
import csv
import io
import json
import logging
import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from enum import StrEnum
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.config import Settings, get_settings
from vendorsync.database import upsert_statement
from vendorsync.models import ReportDataPartition, ReportJob, VendorAccount
from vendorsync.schemas.sync import ResultStatus, StreamResult, SyncSummary
from vendorsync.services.accounts import AccountClients, ClientFactory, get_active_accounts
from vendorsync.services.checkpoints import ReportSyncStateStore
from vendorsync.services.range_planner import plan_report_days
from vendorsync.services.report_types import REPORT_KINDS, ReportKindConfig, get_report_kind
from vendorsync.services.throttle import ThrottleExhaustedError, call_with_throttle_retry
from vendorsync.services.vendor_client import (
    MissingCredentialsError,
    VendorClient,
    VendorClientError,
    VendorErrorKind,
)

logger = logging.getLogger(__name__)


class ReportState(StrEnum):
    SUBMITTED = "SUBMITTED"
    POLLING = "POLLING"
    DONE = "DONE"
    CANCELLED = "CANCELLED"
    FATAL = "FATAL"
    QUEUED_PENDING = "QUEUED_PENDING"


# Vendor processing statuses that end polling
TERMINAL_STATUSES = {ReportState.DONE, ReportState.CANCELLED, ReportState.FATAL}


@dataclass
class ReportOutcome:
    state: ReportState
    external_job_id: str
    document_id: str | None = None


def parse_report_rows(content: bytes) -> list[dict[str, Any]]:
    """
    Parse a downloaded report into rows.

    JSON documents may be a list of rows, an object wrapping a single list
    (``{"reportData": [...]}``) or a single object. Anything else is read as
    tab or comma separated text with a header line.
    """
    text = content.decode("utf-8-sig").strip()
    if not text:
        return []

    try:
        raw = json.loads(text)
    except ValueError:
        first_line = text.split("\n", 1)[0]
        delimiter = "\t" if "\t" in first_line else ","
        return [dict(row) for row in csv.DictReader(io.StringIO(text), delimiter=delimiter)]

    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        values = list(raw.values())
        if len(values) == 1 and isinstance(values[0], list):
            return values[0]
        return [raw]
    return []


def filter_rows_by_partition(rows: list[dict[str, Any]], partition_key: str) -> list[dict[str, Any]]:
    """Keep only the partition's marketplace when rows carry a ``marketplaceId``."""
    if not partition_key or partition_key == "ALL":
        return rows
    if not any(isinstance(row, dict) and "marketplaceId" in row for row in rows):
        return rows
    return [row for row in rows if isinstance(row, dict) and row.get("marketplaceId") == partition_key]


def report_day_bounds(day: date) -> tuple[str, str]:
    """Vendor ``dataStartTime``/``dataEndTime`` covering one UTC day."""
    start = datetime.combine(day, time.min, tzinfo=UTC)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return (
        start.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        end.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    )


class ReportEngine:
    """
    Submits, polls and stores vendor reports.

    Features:
    - One report per reporting day for date-range kinds
    - Bounded polling; unfinished reports parked in the pending queue
    - Per-day partitions upserted by (stream, kind, day, partition key)
    - Pending queue drained with its own delay and attempt ceiling
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
        self.sync_states = ReportSyncStateStore(db)

    @property
    def queue_delay(self) -> timedelta:
        return timedelta(minutes=self.settings.report_queue_delay_minutes)

    async def _call(self, func, label: str):
        return await call_with_throttle_retry(
            func,
            max_retries=self.settings.throttle_retry_max,
            initial_delay=self.settings.throttle_initial_delay_seconds,
            label=label,
        )

    async def submit(
        self,
        client: VendorClient,
        config: ReportKindConfig,
        partition_key: str,
        data_date: date | None = None,
    ) -> str:
        """Create the report request (SUBMITTED) and return the vendor job id."""
        start, end = report_day_bounds(data_date) if data_date else (None, None)
        marketplace_ids = [partition_key]

        report_id = await self._call(
            lambda: client.create_report(
                config.report_type,
                marketplace_ids,
                data_start_time=start,
                data_end_time=end,
                report_options=config.report_options or None,
            ),
            label=f"createReport {config.report_type} {data_date}",
        )
        logger.info(f"Submitted {config.report_type} for {data_date or 'current'}: {report_id}")
        return report_id

    async def enqueue_pending(
        self,
        stream_id: str,
        external_job_id: str,
        report_kind: str,
        data_date: date | None,
        partition_key: str,
        now: datetime | None = None,
    ) -> ReportJob:
        now = now or datetime.now(UTC)
        job = ReportJob(
            stream_id=stream_id,
            external_job_id=external_job_id,
            report_kind=report_kind,
            data_date=data_date,
            partition_key=partition_key,
            retry_at=now + self.queue_delay,
            attempts=0,
        )
        self.db.add(job)
        await self.db.commit()
        logger.warning(
            f"Report {report_kind} {external_job_id} still processing; "
            f"queued for {job.retry_at.isoformat()}"
        )
        return job

    async def wait_for_report(
        self,
        client: VendorClient,
        external_job_id: str,
        *,
        stream_id: str,
        report_kind: str,
        data_date: date | None,
        partition_key: str,
        now: datetime | None = None,
    ) -> ReportOutcome:
        """
        Poll a report until it reaches a terminal status or the budget runs out.

        The budget is ``report_max_wait_seconds`` worth of polls at
        ``report_poll_interval_seconds``; at least one poll is always made.
        An unfinished report is parked in the pending queue.
        """
        interval = self.settings.report_poll_interval_seconds
        max_polls = max(1, math.ceil(self.settings.report_max_wait_seconds / interval)) if interval else 1

        for attempt in range(1, max_polls + 1):
            status = await self._call(
                lambda: client.get_report(external_job_id),
                label=f"getReport {external_job_id}",
            )
            processing_status = status.get("processingStatus")
            if processing_status in TERMINAL_STATUSES:
                state = ReportState(processing_status)
                return ReportOutcome(
                    state=state,
                    external_job_id=external_job_id,
                    document_id=status.get("reportDocumentId"),
                )

            logger.debug(
                f"Report {report_kind} {external_job_id} status={processing_status} poll={attempt}"
            )
            if attempt < max_polls:
                await asyncio.sleep(interval)

        await self.enqueue_pending(
            stream_id, external_job_id, report_kind, data_date, partition_key, now=now
        )
        return ReportOutcome(state=ReportState.QUEUED_PENDING, external_job_id=external_job_id)

    async def fetch_rows(self, client: VendorClient, document_id: str | None) -> list[dict[str, Any]]:
        """
        Resolve the document, download it and parse it into rows.

        Raises:
            VendorClientError: TERMINAL when a finished report names no document
        """
        if not document_id:
            raise VendorClientError(
                VendorErrorKind.TERMINAL, "Report is DONE but has no reportDocumentId"
            )
        document = await self._call(
            lambda: client.get_report_document(document_id),
            label=f"getReportDocument {document_id}",
        )
        content = await self._call(
            lambda: client.download_document(document),
            label=f"download {document_id}",
        )
        return parse_report_rows(content)

    async def save_partition(
        self,
        stream_id: str,
        report_kind: str,
        data_date: date,
        partition_key: str,
        rows: list[dict[str, Any]],
        track_progress: bool = True,
    ) -> int:
        """
        Upsert one report partition, replacing any rows stored for it.

        Args:
            track_progress: Advance the report's sync state to ``data_date``

        Returns:
            Number of rows stored
        """
        data = filter_rows_by_partition(rows, partition_key)

        stmt = upsert_statement(self.db, ReportDataPartition).values(
            stream_id=stream_id,
            report_kind=report_kind,
            data_date=data_date,
            partition_key=partition_key,
            data=data,
            row_count=len(data),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["stream_id", "report_kind", "data_date", "partition_key"],
            set_={"data": data, "row_count": len(data), "updated_at": func.now()},
        )
        await self.db.execute(stmt)

        if track_progress:
            await self.sync_states.advance(stream_id, report_kind, partition_key, data_date, len(data))
        await self.db.commit()

        logger.info(f"Saved {report_kind} {data_date} ({partition_key}) for {stream_id}: {len(data)} rows")
        return len(data)

    async def sync_report_for_stream(
        self,
        account: VendorAccount,
        config: ReportKindConfig,
        explicit_end: date | None = None,
        default_lookback_days: int | None = None,
        now: datetime | None = None,
    ) -> StreamResult:
        """
        Incremental report sync for one account.

        Raises:
            VendorClientError: non-throttle vendor errors
            ThrottleExhaustedError: the vendor kept throttling a request
        """
        stream_id = account.id
        partition_key = account.partition_key
        report_kind = config.report_type
        now = now or datetime.now(UTC)
        client = self.accounts.client_for_account(account)

        if not config.supports_date_range:
            external_job_id = await self.submit(client, config, partition_key)
            outcome = await self.wait_for_report(
                client,
                external_job_id,
                stream_id=stream_id,
                report_kind=report_kind,
                data_date=None,
                partition_key=partition_key,
                now=now,
            )
            return await self._finish_single(client, outcome, stream_id, report_kind, partition_key, now)

        last_day = await self.sync_states.get_last_data_date(stream_id, report_kind, partition_key)
        if default_lookback_days is not None:
            lookback = default_lookback_days
        else:
            lookback = config.lookback_days or self.settings.report_lookback_days
        days = plan_report_days(last_day, lookback, explicit_end=explicit_end, today=now.date())
        if not days:
            return StreamResult(
                stream_id=stream_id,
                kind=report_kind,
                status=ResultStatus.NOTHING_TO_DO,
                message="No new reporting days",
            )

        logger.info(f"{stream_id}/{report_kind}: {len(days)} reporting days {days[0]}..{days[-1]}")
        rows_saved = 0
        pending = 0
        for index, day in enumerate(days):
            external_job_id = await self.submit(client, config, partition_key, day)
            outcome = await self.wait_for_report(
                client,
                external_job_id,
                stream_id=stream_id,
                report_kind=report_kind,
                data_date=day,
                partition_key=partition_key,
                now=now,
            )

            if outcome.state is ReportState.QUEUED_PENDING:
                pending += 1
            elif outcome.state is ReportState.DONE:
                rows = await self.fetch_rows(client, outcome.document_id)
                rows_saved += await self.save_partition(
                    stream_id, report_kind, day, partition_key, rows
                )
            else:
                # CANCELLED / FATAL are not retried; stop before later days pass it
                return StreamResult(
                    stream_id=stream_id,
                    kind=report_kind,
                    status=ResultStatus.FAILED,
                    record_count=rows_saved,
                    deferred_count=pending,
                    error=f"Report {external_job_id} for {day} {outcome.state}",
                )

            if index < len(days) - 1:
                await asyncio.sleep(self.settings.segment_delay_seconds)

        return StreamResult(
            stream_id=stream_id,
            kind=report_kind,
            status=ResultStatus.PENDING if pending else ResultStatus.SYNCED,
            record_count=rows_saved,
            deferred_count=pending,
        )

    async def _finish_single(
        self,
        client: VendorClient,
        outcome: ReportOutcome,
        stream_id: str,
        report_kind: str,
        partition_key: str,
        now: datetime,
    ) -> StreamResult:
        """Complete a report without a date range (stored under today's date)."""
        if outcome.state is ReportState.QUEUED_PENDING:
            return StreamResult(
                stream_id=stream_id,
                kind=report_kind,
                status=ResultStatus.PENDING,
                deferred_count=1,
            )
        if outcome.state is not ReportState.DONE:
            return StreamResult(
                stream_id=stream_id,
                kind=report_kind,
                status=ResultStatus.FAILED,
                error=f"Report {outcome.external_job_id} {outcome.state}",
            )

        rows = await self.fetch_rows(client, outcome.document_id)
        saved = await self.save_partition(
            stream_id, report_kind, now.date(), partition_key, rows, track_progress=False
        )
        return StreamResult(
            stream_id=stream_id, kind=report_kind, status=ResultStatus.SYNCED, record_count=saved
        )

    async def _sync_accounts(
        self,
        configs: list[ReportKindConfig],
        explicit_end: date | None,
        default_lookback_days: int | None,
        now: datetime | None,
    ) -> list[StreamResult]:
        accounts = await get_active_accounts(self.db)
        account_ids = [account.id for account in accounts]
        results: list[StreamResult] = []

        for stream_id in account_ids:
            for config in configs:
                try:
                    account = await self.accounts.get_account(stream_id)
                    result = await self.sync_report_for_stream(
                        account, config, explicit_end, default_lookback_days, now
                    )
                except (VendorClientError, ThrottleExhaustedError) as e:
                    logger.error(f"[Report] {stream_id} {config.report_type}: {e}")
                    result = StreamResult(
                        stream_id=stream_id,
                        kind=config.report_type,
                        status=ResultStatus.FAILED,
                        error=str(e),
                    )
                except Exception as e:
                    await self.db.rollback()
                    logger.error(f"[Report] {stream_id} {config.report_type}: {e}", exc_info=True)
                    result = StreamResult(
                        stream_id=stream_id,
                        kind=config.report_type,
                        status=ResultStatus.FAILED,
                        error=str(e),
                    )
                results.append(result)
                await asyncio.sleep(self.settings.stream_delay_seconds)

        return results

    async def run_report_sync(
        self,
        report_kind: str,
        explicit_end: date | None = None,
        default_lookback_days: int | None = None,
        now: datetime | None = None,
    ) -> SyncSummary:
        """
        Sync one report kind for every active account.

        Raises:
            UnknownReportKindError: report kind not in the catalogue
        """
        config = get_report_kind(report_kind)
        results = await self._sync_accounts([config], explicit_end, default_lookback_days, now)
        if not results:
            return SyncSummary(success=True, message="No authorized vendor accounts")
        return SyncSummary.from_results(results)

    async def run_all_reports(
        self,
        explicit_end: date | None = None,
        default_lookback_days: int | None = None,
        now: datetime | None = None,
    ) -> SyncSummary:
        """Sync every configured report kind for every active account."""
        results = await self._sync_accounts(REPORT_KINDS, explicit_end, default_lookback_days, now)
        if not results:
            return SyncSummary(success=True, message="No authorized vendor accounts")
        return SyncSummary.from_results(results)

    async def pending_count(self) -> int:
        result = await self.db.execute(select(func.count(ReportJob.id)))
        return result.scalar() or 0

    async def _remove(self, job_id: int) -> None:
        await self.db.execute(delete(ReportJob).where(ReportJob.id == job_id))
        await self.db.commit()

    async def _requeue_or_drop(
        self, job_id: int, attempts: int, now: datetime
    ) -> ResultStatus:
        """Push an entry back by the queue delay, or drop it at the attempt ceiling."""
        attempts += 1
        if attempts >= self.settings.report_queue_max_attempts:
            await self._remove(job_id)
            return ResultStatus.DROPPED
        await self.db.execute(
            update(ReportJob)
            .where(ReportJob.id == job_id)
            .values(retry_at=now + self.queue_delay, attempts=attempts)
        )
        await self.db.commit()
        return ResultStatus.REQUEUED

    async def drain_report_queue(
        self, max_items: int | None = None, now: datetime | None = None
    ) -> SyncSummary:
        """
        Re-poll due pending report jobs.

        DONE downloads and saves the partition then removes the entry;
        CANCELLED/FATAL, terminal errors and missing credentials remove it;
        anything else (still processing, throttling, transient errors)
        requeues it until the attempt ceiling.
        """
        now = now or datetime.now(UTC)
        max_items = max_items or self.settings.report_queue_batch_size
        result = await self.db.execute(
            select(ReportJob)
            .where(ReportJob.retry_at <= now)
            .order_by(ReportJob.retry_at, ReportJob.id)
            .limit(max_items)
            .execution_options(populate_existing=True)
        )
        jobs = [
            (job.id, job.stream_id, job.external_job_id, job.report_kind, job.data_date,
             job.partition_key, job.attempts)
            for job in result.scalars().all()
        ]
        if not jobs:
            return SyncSummary(success=True, message="No due report jobs")

        logger.info(f"Draining {len(jobs)} pending report jobs")
        results: list[StreamResult] = []

        for job_id, stream_id, external_job_id, report_kind, data_date, partition_key, attempts in jobs:
            label = f"{report_kind} {external_job_id}"
            try:
                client = await self.accounts.client_for(stream_id)
                status = await self._call(
                    lambda: client.get_report(external_job_id), label=f"getReport {external_job_id}"
                )
                processing_status = status.get("processingStatus")

                if processing_status == ReportState.DONE:
                    rows = await self.fetch_rows(client, status.get("reportDocumentId"))
                    saved = await self.save_partition(
                        stream_id,
                        report_kind,
                        data_date or now.date(),
                        partition_key,
                        rows,
                        track_progress=data_date is not None,
                    )
                    await self._remove(job_id)
                    results.append(
                        StreamResult(
                            stream_id=stream_id,
                            kind=report_kind,
                            status=ResultStatus.SYNCED,
                            record_count=saved,
                            message=f"Report {external_job_id} saved",
                        )
                    )
                elif processing_status in (ReportState.CANCELLED, ReportState.FATAL):
                    await self._remove(job_id)
                    logger.error(f"Pending report {label} ended {processing_status}; dropped")
                    results.append(
                        StreamResult(
                            stream_id=stream_id,
                            kind=report_kind,
                            status=ResultStatus.DROPPED,
                            error=f"Report {external_job_id} {processing_status}",
                        )
                    )
                else:
                    outcome = await self._requeue_or_drop(job_id, attempts, now)
                    results.append(
                        StreamResult(
                            stream_id=stream_id,
                            kind=report_kind,
                            status=outcome,
                            deferred_count=1 if outcome is ResultStatus.REQUEUED else 0,
                            error=None if outcome is ResultStatus.REQUEUED else "max attempts exceeded",
                            message=f"Report {external_job_id} still {processing_status}",
                        )
                    )
            except MissingCredentialsError as e:
                await self._remove(job_id)
                logger.error(f"Pending report {label} dropped, no credentials: {e}")
                results.append(
                    StreamResult(
                        stream_id=stream_id, kind=report_kind, status=ResultStatus.DROPPED, error=str(e)
                    )
                )
            except VendorClientError as e:
                if e.kind is VendorErrorKind.TERMINAL:
                    await self._remove(job_id)
                    outcome = ResultStatus.DROPPED
                else:
                    outcome = await self._requeue_or_drop(job_id, attempts, now)
                logger.error(f"Pending report {label} failed ({e.kind}): {e}; {outcome}")
                results.append(
                    StreamResult(
                        stream_id=stream_id,
                        kind=report_kind,
                        status=outcome,
                        deferred_count=1 if outcome is ResultStatus.REQUEUED else 0,
                        error=str(e),
                    )
                )
            except Exception as e:
                await self.db.rollback()
                outcome = await self._requeue_or_drop(job_id, attempts, now)
                logger.error(f"Pending report {label} failed: {e}; {outcome}", exc_info=True)
                results.append(
                    StreamResult(
                        stream_id=stream_id,
                        kind=report_kind,
                        status=outcome,
                        deferred_count=1 if outcome is ResultStatus.REQUEUED else 0,
                        error=str(e),
                    )
                )

            await asyncio.sleep(self.settings.segment_delay_seconds)

        return SyncSummary.from_results(results)
