"""Scheduled job status routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.database import get_db
from vendorsync.schemas.sync import JobTaskStatusOut
from vendorsync.services.job_status import JobStatusService

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("/status", response_model=list[JobTaskStatusOut])
async def list_job_statuses(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[JobTaskStatusOut]:
    """Last run, outcome and next firing of every scheduled job."""
    statuses = await JobStatusService(db).list_all()
    return [JobTaskStatusOut.model_validate(status) for status in statuses]
