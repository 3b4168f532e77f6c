"""Pydantic schemas for API request/response validation."""

from vendorsync.schemas.sync import (
    CheckpointOut,
    JobTaskStatusOut,
    ReportSyncStateOut,
    ResultStatus,
    StreamResult,
    SyncSummary,
)

__all__ = [
    "CheckpointOut",
    "JobTaskStatusOut",
    "ReportSyncStateOut",
    "ResultStatus",
    "StreamResult",
    "SyncSummary",
]
