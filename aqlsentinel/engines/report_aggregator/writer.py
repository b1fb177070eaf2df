"""CSV rendering of scan reports."""

from __future__ import annotations

import csv
import io
from pathlib import Path

from aqlsentinel.engines.report_aggregator.models import REPORT_HEADER, ScanReport

PARTIAL_MARKER = "# PARTIAL"


def render_csv(report: ScanReport) -> str:
    """Render *report* as CSV text.

    Partial reports end with a ``# PARTIAL: n/m candidates reported`` line.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(REPORT_HEADER)
    for row in report.rows:
        writer.writerow(row.as_tuple())
    if report.partial:
        reason = report.partial_reason or "interrupted"
        buf.write(
            f"{PARTIAL_MARKER}: {report.processed_candidates}/{report.total_candidates} "
            f"candidates reported ({reason})\n"
        )
    return buf.getvalue()


def write_report(path: str | Path, report: ScanReport) -> Path:
    """Write the report CSV to *path* and return the resolved path."""
    target = Path(path)
    if target.parent != Path("."):
        target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(render_csv(report), encoding="utf-8")
    return target.resolve()
