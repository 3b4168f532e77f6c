"""Catalogue of vendor analytics report kinds."""

from dataclasses import dataclass, field


class UnknownReportKindError(ValueError):
    """Requested report kind is not in the catalogue."""


@dataclass(frozen=True)
class ReportKindConfig:
    report_type: str
    supports_date_range: bool = True
    lookback_days: int | None = None
    report_options: dict[str, str] = field(default_factory=dict)


REPORT_KINDS: list[ReportKindConfig] = [
    ReportKindConfig(
        report_type="GET_VENDOR_REAL_TIME_INVENTORY_REPORT",
        lookback_days=30,
    ),
    ReportKindConfig(
        report_type="GET_VENDOR_REAL_TIME_TRAFFIC_REPORT",
        lookback_days=30,
    ),
    ReportKindConfig(
        report_type="GET_VENDOR_REAL_TIME_SALES_REPORT",
        lookback_days=30,
    ),
    ReportKindConfig(
        report_type="GET_VENDOR_SALES_REPORT",
        lookback_days=365,
        report_options={
            "reportPeriod": "DAY",
            "sellingProgram": "RETAIL",
            "distributorView": "SOURCING",
        },
    ),
    ReportKindConfig(
        report_type="GET_VENDOR_NET_PURE_PRODUCT_MARGIN_REPORT",
        lookback_days=365,
        report_options={"reportPeriod": "DAY"},
    ),
    ReportKindConfig(
        report_type="GET_VENDOR_TRAFFIC_REPORT",
        lookback_days=365,
        report_options={"reportPeriod": "DAY"},
    ),
    ReportKindConfig(
        report_type="GET_VENDOR_FORECASTING_REPORT",
        supports_date_range=False,
        report_options={"sellingProgram": "RETAIL"},
    ),
    ReportKindConfig(
        report_type="GET_VENDOR_INVENTORY_REPORT",
        lookback_days=365,
        report_options={
            "reportPeriod": "DAY",
            "sellingProgram": "RETAIL",
            "distributorView": "SOURCING",
        },
    ),
]


def get_report_kind(report_type: str) -> ReportKindConfig:
    """
    Look up a report kind.

    Raises:
        UnknownReportKindError: report type not in the catalogue
    """
    for config in REPORT_KINDS:
        if config.report_type == report_type:
            return config
    supported = ", ".join(c.report_type for c in REPORT_KINDS)
    raise UnknownReportKindError(f"Unknown report kind: {report_type} (supported: {supported})")
