"""RetrySegment model: durable queue of throttle-deferred segments."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from vendorsync.database import Base


class RetrySegment(Base):
    """
    A half-open ``[segment_start, segment_end)`` interval whose in-line
    throttle retries were exhausted.

    Drained once ``retry_at`` has passed; removed on success, on a permanent
    failure, or once ``attempts`` reaches the queue ceiling.
    """

    __tablename__ = "retry_segments"

    id: Mapped[int] = mapped_column(primary_key=True)
    stream_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sync_type: Mapped[str] = mapped_column(String(50), nullable=False)
    segment_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    segment_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    retry_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_retry_segments_retry_at", retry_at),)

    def __repr__(self) -> str:
        return (
            f"<RetrySegment {self.stream_id}/{self.sync_type}: "
            f"{self.segment_start}~{self.segment_end} attempts={self.attempts}>"
        )
