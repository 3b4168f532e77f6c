"""Built-in scheduled jobs."""

import logging

from vendorsync.config import Settings, get_settings
from vendorsync.database import async_session_maker
from vendorsync.schemas.sync import ResultStatus, SyncSummary
from vendorsync.services.report_engine import ReportEngine
from vendorsync.services.streams import STREAMS
from vendorsync.services.sync_engine import SyncEngine
from vendorsync.tasks.scheduler import JobScheduler, ScheduledJob

logger = logging.getLogger(__name__)


class JobRunError(Exception):
    """A scheduled run finished with failed streams."""


def _raise_on_failures(label: str, summary: SyncSummary) -> None:
    failed = [r for r in summary.per_stream_results if r.status == ResultStatus.FAILED]
    if summary.queue is not None:
        failed += [r for r in summary.queue.per_stream_results if r.status == ResultStatus.FAILED]
    if failed:
        details = "; ".join(f"{r.stream_id}/{r.kind}: {r.error}" for r in failed)
        raise JobRunError(f"{label}: {len(failed)} failed ({details})")


def sync_stream_job(sync_type: str):
    async def run() -> None:
        logger.info(f"Starting scheduled {sync_type} sync")
        async with async_session_maker() as db:
            summary = await SyncEngine(db).run_full_sync(sync_type=sync_type)
        logger.info(
            f"{sync_type} sync complete: {summary.processed_count} streams, "
            f"{summary.deferred_count} deferred"
        )
        _raise_on_failures(f"{sync_type} sync", summary)

    return run


async def retry_queue_drain_job() -> None:
    """Drain every due deferred segment."""
    async with async_session_maker() as db:
        summary = await SyncEngine(db).drain_retry_queue()
    logger.info(f"Retry queue drain complete: {summary.processed_count} segments")


async def report_sync_job() -> None:
    """Sync every report kind for every active account."""
    logger.info("Starting scheduled report sync")
    async with async_session_maker() as db:
        summary = await ReportEngine(db).run_all_reports()
    logger.info(
        f"Report sync complete: {summary.processed_count} reports, "
        f"{summary.deferred_count} pending"
    )
    _raise_on_failures("report sync", summary)


async def report_queue_drain_job() -> None:
    async with async_session_maker() as db:
        summary = await ReportEngine(db).drain_report_queue()
    logger.info(f"Report queue drain complete: {summary.processed_count} jobs")


def build_jobs(settings: Settings | None = None) -> list[ScheduledJob]:
    """Job table: one sync job per stream type plus queue drains and reports."""
    settings = settings or get_settings()
    jobs = [
        ScheduledJob(
            name=f"sync-{sync_type.value}",
            trigger_expression=settings.sync_cron,
            handler=sync_stream_job(sync_type.value),
            task_type="stream_sync",
        )
        for sync_type in STREAMS
    ]
    jobs += [
        ScheduledJob(
            name="retry-queue-drain",
            trigger_expression=settings.retry_queue_cron,
            handler=retry_queue_drain_job,
            task_type="retry_queue",
        ),
        ScheduledJob(
            name="report-sync",
            trigger_expression=settings.report_sync_cron,
            handler=report_sync_job,
            task_type="report_sync",
        ),
        ScheduledJob(
            name="report-queue-drain",
            trigger_expression=settings.report_queue_cron,
            handler=report_queue_drain_job,
            task_type="report_queue",
        ),
    ]
    return jobs


def setup_scheduler(settings: Settings | None = None) -> JobScheduler:
    """Create, populate and start the job scheduler."""
    job_scheduler = JobScheduler()
    for job in build_jobs(settings):
        job_scheduler.schedule(job)
    job_scheduler.start()
    return job_scheduler
