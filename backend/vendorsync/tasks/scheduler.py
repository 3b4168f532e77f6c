"""Cron-triggered job scheduler with strictly serial execution."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from vendorsync.database import async_session_maker
from vendorsync.services.job_status import JobStatusService

logger = logging.getLogger(__name__)


@dataclass
class ScheduledJob:
    """A named job: handler plus five-field cron expression."""

    name: str
    trigger_expression: str
    handler: Callable[[], Awaitable[Any]]
    enabled: bool = True
    task_type: str = "sync"


@dataclass
class JobRun:
    name: str
    started_at: datetime
    finished_at: datetime
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class JobScheduler:
    """
    Maps cron triggers onto a single in-process FIFO.

    Features:
    - Trigger expressions validated up front; bad or disabled jobs skipped
    - Firings are queued, never invoked directly
    - One worker runs queued jobs back-to-back, so jobs sharing the vendor
      quota never overlap
    - Job failures logged and recorded, never fatal to the worker
    - Job status rows written before and after each run
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler | None = None,
        session_factory: async_sessionmaker | None = async_session_maker,
        history_size: int = 100,
    ):
        self.scheduler = scheduler or AsyncIOScheduler()
        self.session_factory = session_factory
        self.jobs: dict[str, ScheduledJob] = {}
        self.triggers: dict[str, CronTrigger] = {}
        self.runs: deque[JobRun] = deque(maxlen=history_size)
        self._queue: asyncio.Queue[ScheduledJob | None] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def schedule(self, job: ScheduledJob) -> bool:
        """
        Register a job with its cron trigger.

        Returns:
            True if registered; False for disabled jobs or invalid expressions
        """
        if not job.enabled:
            logger.info(f"Job {job.name} disabled, not scheduled")
            return False

        try:
            trigger = CronTrigger.from_crontab(job.trigger_expression)
        except ValueError as e:
            logger.error(f"Job {job.name} has invalid trigger '{job.trigger_expression}': {e}")
            return False

        self.jobs[job.name] = job
        self.triggers[job.name] = trigger
        self.scheduler.add_job(
            self._fire,
            trigger=trigger,
            args=[job.name],
            id=job.name,
            name=job.name,
            replace_existing=True,
            coalesce=True,
        )
        logger.info(f"Scheduled job {job.name} ({job.trigger_expression})")
        return True

    async def _fire(self, job_name: str) -> None:
        job = self.jobs.get(job_name)
        if job is not None:
            self.enqueue(job)

    def enqueue(self, job: ScheduledJob) -> None:
        """Append a job to the FIFO; the worker picks it up in order."""
        self._queue.put_nowait(job)
        logger.debug(f"Job {job.name} queued ({self._queue.qsize()} pending)")

    def next_fire_time(self, job_name: str) -> datetime | None:
        trigger = self.triggers.get(job_name)
        if trigger is None:
            return None
        return trigger.get_next_fire_time(None, datetime.now(trigger.timezone))

    async def _record(self, coro_factory: Callable[[JobStatusService], Awaitable[None]]) -> None:
        if self.session_factory is None:
            return
        try:
            async with self.session_factory() as db:
                await coro_factory(JobStatusService(db))
        except Exception as e:
            logger.error(f"Failed to record job status: {e}")

    async def run_job(self, job: ScheduledJob) -> JobRun:
        """Run one job to completion, recording its status on both sides."""
        next_run = self.next_fire_time(job.name)
        await self._record(lambda status: status.mark_started(job.name, job.task_type, next_run))

        started_at = datetime.now(UTC)
        logger.info(f"Starting job {job.name}")
        error = None
        try:
            await job.handler()
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(f"Job {job.name} failed: {e}", exc_info=True)
        finished_at = datetime.now(UTC)

        run = JobRun(name=job.name, started_at=started_at, finished_at=finished_at, error=error)
        self.runs.append(run)
        await self._record(
            lambda status: status.mark_finished(job.name, job.task_type, error, finished_at)
        )
        logger.info(
            f"Job {job.name} {'succeeded' if run.ok else 'failed'} "
            f"in {(finished_at - started_at).total_seconds():.1f}s"
        )
        return run

    async def _drain(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job is None:
                    return
                await self.run_job(job)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        """Start trigger firing and the worker. Needs a running event loop."""
        if self._running:
            return
        self._running = True
        self._worker = asyncio.create_task(self._drain())
        self.scheduler.start()
        logger.info(f"Scheduler started with {len(self.jobs)} jobs")

    async def join(self) -> None:
        """Wait until every queued job has run."""
        await self._queue.join()

    def stop(self) -> None:
        """
        Stop firing triggers and discard queued jobs.

        A job already running finishes; the worker exits after it.
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        discarded = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            discarded += 1

        if self._running:
            self._queue.put_nowait(None)
        self._running = False
        logger.info(f"Scheduler shut down ({discarded} queued jobs discarded)")
