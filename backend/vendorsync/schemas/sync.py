"""Pydantic schemas for sync run results."""

from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ResultStatus(StrEnum):
    """Outcome of one stream, segment or queue entry within a run."""

    SYNCED = "synced"
    NOTHING_TO_DO = "nothing_to_do"
    DEFERRED = "deferred"
    FAILED = "failed"
    REQUEUED = "requeued"
    DROPPED = "dropped"
    PENDING = "pending"


class StreamResult(BaseModel):
    """Result for a single stream (or a single queue entry)."""

    stream_id: str
    kind: str  # sync type or report kind
    status: ResultStatus
    record_count: int = 0
    deferred_count: int = 0
    message: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (ResultStatus.SYNCED, ResultStatus.NOTHING_TO_DO)


class SyncSummary(BaseModel):
    """
    Structured summary returned by every public engine operation.

    ``success`` is False on partial success; completed progress is kept.
    """

    success: bool
    processed_count: int = 0
    deferred_count: int = 0
    per_stream_results: list[StreamResult] = Field(default_factory=list)
    queue: "SyncSummary | None" = None
    message: str | None = None

    @classmethod
    def from_results(
        cls,
        results: list[StreamResult],
        queue: "SyncSummary | None" = None,
        message: str | None = None,
    ) -> "SyncSummary":
        deferred = sum(r.deferred_count for r in results)
        return cls(
            success=all(r.ok for r in results) and deferred == 0,
            processed_count=len(results),
            deferred_count=deferred,
            per_stream_results=results,
            queue=queue,
            message=message,
        )


class CheckpointOut(BaseModel):
    """Checkpoint response schema."""

    model_config = ConfigDict(from_attributes=True)

    stream_id: str
    sync_type: str
    last_end_at: datetime
    last_sync_at: datetime
    record_count: int


class ReportSyncStateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stream_id: str
    report_kind: str
    partition_key: str
    last_data_end_at: date
    record_count: int


class JobTaskStatusOut(BaseModel):
    """Scheduled job status response schema."""

    model_config = ConfigDict(from_attributes=True)

    job_name: str
    task_type: str
    last_run_at: datetime | None = None
    last_status: str | None = None
    last_error: str | None = None
    next_scheduled_at: datetime | None = None
    updated_at: datetime | None = None
