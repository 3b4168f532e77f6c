"""ShipmentDetail model for the vendor Shipments API."""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from vendorsync.database import Base, JSONPayload


class ShipmentDetail(Base):
    """Shipment detail keyed by the vendor's reference number."""

    __tablename__ = "shipment_details"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reference_number: Mapped[str] = mapped_column(String(100), nullable=False)
    shipment_id: Mapped[str | None] = mapped_column(String(100))

    data: Mapped[Any] = mapped_column(JSONPayload, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("account_id", "reference_number", name="uq_shipment_detail"),
    )

    def __repr__(self) -> str:
        return f"<ShipmentDetail {self.reference_number}>"
