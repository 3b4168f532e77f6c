"""Report partitions and per-report sync state."""

from datetime import date, datetime
from typing import Any

from sqlalchemy import Date, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from vendorsync.database import Base, JSONPayload


class ReportDataPartition(Base):
    """
    Rows of one downloaded report, one partition per reporting day.

    Unique per (stream, report kind, data date, partition key); a re-sync
    replaces the stored rows.
    """

    __tablename__ = "report_data_partitions"

    id: Mapped[int] = mapped_column(primary_key=True)
    stream_id: Mapped[str] = mapped_column(String(64), nullable=False)
    report_kind: Mapped[str] = mapped_column(String(100), nullable=False)
    data_date: Mapped[date] = mapped_column(Date, nullable=False)
    partition_key: Mapped[str] = mapped_column(String(50), nullable=False, default="ALL")
    data: Mapped[Any] = mapped_column(JSONPayload, nullable=False)
    row_count: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "stream_id",
            "report_kind",
            "data_date",
            "partition_key",
            name="uq_report_partition",
        ),
    )

    def __repr__(self) -> str:
        return f"<ReportDataPartition {self.report_kind} {self.data_date} ({self.row_count} rows)>"


class ReportSyncState(Base):
    """Last reporting day saved for a (stream, report kind, partition) triple."""

    __tablename__ = "report_sync_states"

    stream_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    report_kind: Mapped[str] = mapped_column(String(100), primary_key=True)
    partition_key: Mapped[str] = mapped_column(String(50), primary_key=True)
    last_data_end_at: Mapped[date] = mapped_column(Date, nullable=False)
    record_count: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ReportSyncState {self.stream_id}/{self.report_kind}: {self.last_data_end_at}>"
