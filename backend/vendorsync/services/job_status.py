"""Persistence of scheduled job outcomes (``job_task_statuses``)."""

import logging
from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.database import upsert_statement
from vendorsync.models import JobTaskStatus

logger = logging.getLogger(__name__)


class JobStatusService:
    """Records when each scheduled job ran, how it ended and when it runs next."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _upsert(self, job_name: str, task_type: str, values: dict) -> None:
        stmt = upsert_statement(self.db, JobTaskStatus).values(
            job_name=job_name, task_type=task_type, **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["job_name"],
            set_={"task_type": task_type, "updated_at": func.now(), **values},
        )
        await self.db.execute(stmt)
        await self.db.commit()

    async def mark_started(
        self, job_name: str, task_type: str, next_scheduled_at: datetime | None
    ) -> None:
        await self._upsert(job_name, task_type, {"next_scheduled_at": next_scheduled_at})

    async def mark_finished(
        self,
        job_name: str,
        task_type: str,
        error: str | None = None,
        finished_at: datetime | None = None,
    ) -> None:
        """
        Store the outcome of a run.

        Args:
            error: Error text for a failed run; ``None`` records success
        """
        await self._upsert(
            job_name,
            task_type,
            {
                "last_run_at": finished_at or datetime.now(UTC),
                "last_status": "failed" if error else "success",
                "last_error": error,
            },
        )

    async def list_all(self) -> list[JobTaskStatus]:
        result = await self.db.execute(
            select(JobTaskStatus)
            .order_by(JobTaskStatus.job_name)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
