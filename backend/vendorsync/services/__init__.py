"""Sync engine, report engine and their building blocks."""

from vendorsync.services.report_engine import ReportEngine
from vendorsync.services.sync_engine import SyncEngine
from vendorsync.services.vendor_client import VendorClient

__all__ = ["ReportEngine", "SyncEngine", "VendorClient"]
