"""Registry of the incrementally synced vendor streams."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from vendorsync.config import Settings
from vendorsync.services.vendor_client import ListOperation


class SyncType(StrEnum):
    PURCHASE_ORDERS = "purchase_orders"
    DIRECT_FULFILLMENT_ORDERS = "direct_fulfillment_orders"
    SHIPMENTS = "shipments"


def _purchase_order_key(item: dict[str, Any]) -> str | None:
    value = item.get("purchaseOrderNumber")
    return str(value) if value else None


def _df_order_key(item: dict[str, Any]) -> str | None:
    value = item.get("purchaseOrderNumber") or item.get("purchaseOrderId")
    return str(value) if value else None


def _shipment_key(item: dict[str, Any]) -> str | None:
    for field_name in ("amazonReferenceNumber", "amazonReferenceId", "shipmentId", "referenceNumber"):
        value = item.get(field_name)
        if value:
            return str(value)
    return None


@dataclass(frozen=True)
class StreamDefinition:
    """How one data kind is pulled from the vendor and keyed in the record store."""

    sync_type: SyncType
    operation: ListOperation
    natural_key: Callable[[dict[str, Any]], str | None]
    lookback_setting: str = "default_lookback_days"

    def lookback_days(self, settings: Settings) -> int:
        return getattr(settings, self.lookback_setting)


STREAMS: dict[SyncType, StreamDefinition] = {
    SyncType.PURCHASE_ORDERS: StreamDefinition(
        sync_type=SyncType.PURCHASE_ORDERS,
        operation=ListOperation(
            name="getPurchaseOrders",
            path="/vendor/orders/v1/purchaseOrders",
            items_key="purchaseOrders",
            range_params=("createdAfter", "createdBefore"),
            extra_params=(("includeDetails", "true"),),
        ),
        natural_key=_purchase_order_key,
    ),
    SyncType.DIRECT_FULFILLMENT_ORDERS: StreamDefinition(
        sync_type=SyncType.DIRECT_FULFILLMENT_ORDERS,
        operation=ListOperation(
            name="getOrders",
            path="/vendor/directFulfillment/orders/2021-12-28/purchaseOrders",
            items_key="orders",
            range_params=("createdAfter", "createdBefore"),
            page_limit=False,
            extra_params=(("includeDetails", "true"),),
        ),
        natural_key=_df_order_key,
    ),
    SyncType.SHIPMENTS: StreamDefinition(
        sync_type=SyncType.SHIPMENTS,
        operation=ListOperation(
            name="GetShipmentDetails",
            path="/vendor/shipping/v1/shipments",
            items_key="shipments",
            range_params=("shipAfter", "shipBefore"),
        ),
        natural_key=_shipment_key,
        lookback_setting="shipments_lookback_days",
    ),
}


def get_stream(sync_type: str) -> StreamDefinition:
    """
    Look up a stream definition.

    Raises:
        ValueError: unknown sync type
    """
    try:
        return STREAMS[SyncType(sync_type)]
    except ValueError:
        supported = ", ".join(s.value for s in SyncType)
        raise ValueError(f"Unknown sync type: {sync_type} (supported: {supported})") from None
