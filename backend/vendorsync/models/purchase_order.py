"""Purchase order models (vendor Orders and Direct Fulfillment APIs)."""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from vendorsync.database import Base, JSONPayload


class PurchaseOrder(Base):
    """
    Purchase order issued to the vendor.

    Natural key: (account_id, purchase_order_number). Line items stay in the
    raw payload.
    """

    __tablename__ = "purchase_orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    purchase_order_number: Mapped[str] = mapped_column(String(50), nullable=False)

    order_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    order_state: Mapped[str | None] = mapped_column(String(50))
    selling_party_id: Mapped[str | None] = mapped_column(String(50))
    ship_to_party_id: Mapped[str | None] = mapped_column(String(50))
    item_count: Mapped[int | None] = mapped_column()

    data: Mapped[Any] = mapped_column(JSONPayload, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("account_id", "purchase_order_number", name="uq_purchase_order"),
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.purchase_order_number}: {self.order_state}>"


class DirectFulfillmentOrder(Base):
    """Direct fulfillment (drop ship) order. Natural key: (account_id, purchase_order_number)."""

    __tablename__ = "direct_fulfillment_orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    purchase_order_number: Mapped[str] = mapped_column(String(50), nullable=False)

    order_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    order_status: Mapped[str | None] = mapped_column(String(50))
    item_count: Mapped[int | None] = mapped_column()

    data: Mapped[Any] = mapped_column(JSONPayload, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("account_id", "purchase_order_number", name="uq_df_order"),
        Index("idx_df_orders_order_date", order_date.desc()),
    )

    def __repr__(self) -> str:
        return f"<DirectFulfillmentOrder {self.purchase_order_number}: {self.order_status}>"
