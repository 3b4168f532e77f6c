"""SyncCheckpoint model to track incremental sync progress per stream."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from vendorsync.database import Base


class SyncCheckpoint(Base):
    """
    High-water mark for one (account, sync type) stream.

    ``last_end_at`` is the exclusive lower bound of the next pull. It only
    moves forward, and only after a segment's records have been persisted.
    Rows are never deleted.
    """

    __tablename__ = "sync_checkpoints"

    stream_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # 'purchase_orders', 'direct_fulfillment_orders' or 'shipments'
    sync_type: Mapped[str] = mapped_column(String(50), primary_key=True)
    last_end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_sync_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    record_count: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)

    def __repr__(self) -> str:
        return f"<SyncCheckpoint {self.stream_id}/{self.sync_type}: {self.last_end_at}>"
