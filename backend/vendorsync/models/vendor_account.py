"""VendorAccount model: the accounts whose streams are synced."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from vendorsync.database import Base


class VendorAccount(Base):
    """Vendor account with the token used to sign its API requests."""

    __tablename__ = "vendor_accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    country_code: Mapped[str | None] = mapped_column(String(2))
    marketplace_id: Mapped[str | None] = mapped_column(String(20))
    access_token: Mapped[str | None] = mapped_column(String(2048))
    is_authorized: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    @property
    def partition_key(self) -> str:
        return self.marketplace_id or "ALL"

    def __repr__(self) -> str:
        return f"<VendorAccount {self.id}: {self.name}>"
