"""Record store: idempotent upserts of vendor records by natural key."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.database import upsert_statement
from vendorsync.models import DirectFulfillmentOrder, PurchaseOrder, ShipmentDetail
from vendorsync.services.streams import SyncType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpsertResult:
    """
    Outcome of one upsert.

    A failed mapping is a non-fatal side effect: callers log it and move on.
    """

    ok: bool
    natural_key: str | None = None
    error: str | None = None


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed) into aware UTC."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _party_id(record: dict[str, Any], name: str) -> str | None:
    party = record.get(name)
    if isinstance(party, dict):
        return party.get("partyId")
    return None


class RecordStore:
    """
    Persists vendor records into their typed tables.

    Upserts are keyed by (account, vendor natural key) so replaying a page
    never duplicates rows.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _purchase_order_values(self, record: dict[str, Any]) -> dict[str, Any]:
        details = record.get("orderDetails") or record
        items = details.get("items") or []
        return {
            "order_date": parse_datetime(
                details.get("purchaseOrderDate") or record.get("purchaseOrderDate")
            ),
            "order_state": record.get("purchaseOrderState") or record.get("orderState"),
            "selling_party_id": _party_id(details, "sellingParty"),
            "ship_to_party_id": _party_id(details, "shipToParty"),
            "item_count": len(items),
        }

    def _df_order_values(self, record: dict[str, Any]) -> dict[str, Any]:
        details = record.get("orderDetails") or record
        items = details.get("items") or details.get("orderItems") or []
        return {
            "order_date": parse_datetime(details.get("orderDate")),
            "order_status": details.get("orderStatus"),
            "item_count": len(items),
        }

    async def upsert(
        self,
        sync_type: SyncType,
        account_id: str,
        natural_key: str | None,
        record: dict[str, Any],
    ) -> UpsertResult:
        """
        Insert or update one record.

        Returns:
            UpsertResult; ``ok=False`` when the record cannot be mapped
        """
        if not natural_key:
            return UpsertResult(ok=False, error="record has no natural key")

        try:
            if sync_type is SyncType.PURCHASE_ORDERS:
                model, key_column = PurchaseOrder, "purchase_order_number"
                values = self._purchase_order_values(record)
            elif sync_type is SyncType.DIRECT_FULFILLMENT_ORDERS:
                model, key_column = DirectFulfillmentOrder, "purchase_order_number"
                values = self._df_order_values(record)
            else:
                model, key_column = ShipmentDetail, "reference_number"
                shipment_id = record.get("shipmentId")
                values = {"shipment_id": str(shipment_id) if shipment_id else None}
        except (AttributeError, TypeError, ValueError) as e:
            return UpsertResult(ok=False, natural_key=natural_key, error=f"mapping failed: {e}")

        values.update({"account_id": account_id, key_column: natural_key, "data": record})
        update_values = {
            k: v for k, v in values.items() if k not in ("account_id", key_column)
        }
        update_values["updated_at"] = func.now()

        stmt = upsert_statement(self.db, model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id", key_column],
            set_=update_values,
        )
        await self.db.execute(stmt)
        return UpsertResult(ok=True, natural_key=natural_key)
