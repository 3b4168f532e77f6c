"""API routers."""

from vendorsync.routers.health import router as health_router
from vendorsync.routers.jobs import router as jobs_router
from vendorsync.routers.reports import router as reports_router
from vendorsync.routers.sync import router as sync_router

__all__ = ["health_router", "jobs_router", "reports_router", "sync_router"]
