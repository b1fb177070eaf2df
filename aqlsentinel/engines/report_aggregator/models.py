"""Data models for the report aggregator engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

RowStatus = Literal["FOUND", "NOT_FOUND", "ERROR"]

REPORT_HEADER = ("Package", "Version", "Filename", "Status", "Repo", "Path")


@dataclass(frozen=True)
class ReportRow:
    """One report line. For ERROR rows ``repo`` carries the failure reason."""

    package: str
    version: str
    filename: str
    status: RowStatus
    repo: str = ""
    path: str = ""

    def as_tuple(self) -> tuple[str, ...]:
        return (self.package, self.version, self.filename, self.status, self.repo, self.path)


@dataclass(frozen=True)
class ScanReport:
    """Ordered report rows plus run bookkeeping."""

    rows: tuple[ReportRow, ...]
    total_candidates: int
    processed_candidates: int
    found_candidates: int = 0
    error_candidates: int = 0
    partial_reason: str | None = None
    missing: tuple[str, ...] = field(default=(), repr=False)  # filenames never reported

    @property
    def partial(self) -> bool:
        return self.processed_candidates < self.total_candidates or self.partial_reason is not None
