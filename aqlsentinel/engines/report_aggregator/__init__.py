"""Report aggregator engine: ordered, deterministic scan reports."""

from aqlsentinel.engines.report_aggregator.aggregator import (
    ReportAggregator,
    aggregate,
    found_rows,
    rows_for,
)
from aqlsentinel.engines.report_aggregator.models import REPORT_HEADER, ReportRow, ScanReport
from aqlsentinel.engines.report_aggregator.writer import PARTIAL_MARKER, render_csv, write_report

__all__ = [
    "PARTIAL_MARKER",
    "REPORT_HEADER",
    "ReportAggregator",
    "ReportRow",
    "ScanReport",
    "aggregate",
    "found_rows",
    "render_csv",
    "write_report",
    "rows_for",
]
