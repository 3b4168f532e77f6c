"""Database models."""

from vendorsync.models.job_task_status import JobTaskStatus
from vendorsync.models.purchase_order import DirectFulfillmentOrder, PurchaseOrder
from vendorsync.models.report_data import ReportDataPartition, ReportSyncState
from vendorsync.models.report_job import ReportJob
from vendorsync.models.retry_segment import RetrySegment
from vendorsync.models.shipment_detail import ShipmentDetail
from vendorsync.models.sync_checkpoint import SyncCheckpoint
from vendorsync.models.vendor_account import VendorAccount

__all__ = [
    "DirectFulfillmentOrder",
    "JobTaskStatus",
    "PurchaseOrder",
    "ReportDataPartition",
    "ReportJob",
    "ReportSyncState",
    "RetrySegment",
    "ShipmentDetail",
    "SyncCheckpoint",
    "VendorAccount",
]
