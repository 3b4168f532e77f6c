"""ReportJob model: report requests that outlived the polling budget."""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from vendorsync.database import Base


class ReportJob(Base):
    """Pending report generation job, re-polled once ``retry_at`` passes."""

    __tablename__ = "report_jobs"

    id: Mapped[int] = mapped_column(primary_key=True)
    stream_id: Mapped[str] = mapped_column(String(64), nullable=False)
    external_job_id: Mapped[str] = mapped_column(String(100), nullable=False)
    report_kind: Mapped[str] = mapped_column(String(100), nullable=False)
    # None for reports without a date range
    data_date: Mapped[date | None] = mapped_column(Date)
    partition_key: Mapped[str] = mapped_column(String(50), nullable=False, default="ALL")
    retry_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_report_jobs_retry_at", retry_at),)

    def __repr__(self) -> str:
        return f"<ReportJob {self.report_kind} {self.external_job_id} attempts={self.attempts}>"
