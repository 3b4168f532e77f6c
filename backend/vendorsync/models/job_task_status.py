"""JobTaskStatus model: last outcome and next firing of each scheduled job."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from vendorsync.database import Base


class JobTaskStatus(Base):
    __tablename__ = "job_task_statuses"

    job_name: Mapped[str] = mapped_column(String(100), primary_key=True)
    task_type: Mapped[str] = mapped_column(String(100), nullable=False)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_status: Mapped[str | None] = mapped_column(String(20))  # 'success' or 'failed'
    last_error: Mapped[str | None] = mapped_column(Text)
    next_scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<JobTaskStatus {self.job_name}: {self.last_status}>"
