#!/usr/bin/env python3
"""
Run one sync pass outside the scheduler.

Usage:
    run_sync.py <sync_type|all|report:<kind>|queues> [end YYYY-MM-DD] [lookback_days]

Examples:
    run_sync.py purchase_orders
    run_sync.py all
    run_sync.py shipments 2024-08-02 30
    run_sync.py report:GET_VENDOR_SALES_REPORT
    run_sync.py queues
"""

import asyncio
import sys
from datetime import UTC, date, datetime, time

from dotenv import load_dotenv

load_dotenv()

from vendorsync.database import async_session_maker  # noqa: E402
from vendorsync.schemas.sync import SyncSummary  # noqa: E402
from vendorsync.services.report_engine import ReportEngine  # noqa: E402
from vendorsync.services.sync_engine import SyncEngine  # noqa: E402

REPORT_PREFIX = "report:"
ALL_STREAMS = "all"


def log(msg):
    """Print with flush for immediate output."""
    print(msg, flush=True)


def log_summary(label: str, summary: SyncSummary) -> None:
    log(
        f"{label}: success={summary.success} processed={summary.processed_count} "
        f"deferred={summary.deferred_count}"
        + (f" ({summary.message})" if summary.message else "")
    )
    for result in summary.per_stream_results:
        line = f"  {result.stream_id}/{result.kind}: {result.status} records={result.record_count}"
        if result.error:
            line += f" error={result.error}"
        log(line)
    if summary.queue is not None and summary.queue.processed_count:
        log_summary(f"{label} (queue)", summary.queue)


async def run(target: str, end: date | None, lookback_days: int | None) -> SyncSummary:
    async with async_session_maker() as db:
        if target == "queues":
            segments = await SyncEngine(db).drain_retry_queue()
            log_summary("retry queue", segments)
            reports = await ReportEngine(db).drain_report_queue()
            log_summary("report queue", reports)
            return SyncSummary.from_results(
                segments.per_stream_results + reports.per_stream_results
            )

        if target.startswith(REPORT_PREFIX):
            kind = target[len(REPORT_PREFIX):]
            summary = await ReportEngine(db).run_report_sync(
                kind, explicit_end=end, default_lookback_days=lookback_days
            )
            log_summary(kind, summary)
            return summary

        explicit_end = datetime.combine(end, time.min, tzinfo=UTC) if end else None
        summary = await SyncEngine(db).run_full_sync(
            sync_type=None if target == ALL_STREAMS else target,
            explicit_end=explicit_end,
            default_lookback_days=lookback_days,
        )
        log_summary(target, summary)
        return summary


if __name__ == "__main__":
    if len(sys.argv) < 2:
        log(__doc__)
        sys.exit(2)

    target = sys.argv[1]
    try:
        end = date.fromisoformat(sys.argv[2]) if len(sys.argv) > 2 else None
        lookback_days = int(sys.argv[3]) if len(sys.argv) > 3 else None
    except ValueError as e:
        log(f"Error: {e}")
        sys.exit(2)

    try:
        summary = asyncio.run(run(target, end, lookback_days))
    except ValueError as e:
        log(f"Error: {e}")
        sys.exit(2)

    sys.exit(0 if summary.success else 1)
