"""Report aggregator: dispatch results to deterministic report rows."""

from __future__ import annotations

from collections.abc import AsyncIterable, Sequence

import structlog

from aqlsentinel.engines.feed_normalizer.models import Candidate
from aqlsentinel.engines.query_dispatcher.models import DispatchResult, QueryOutcome
from aqlsentinel.engines.report_aggregator.models import ReportRow, ScanReport

log = structlog.get_logger("aqlsentinel.engine")


def rows_for(candidate: Candidate, outcome: QueryOutcome) -> list[ReportRow]:
    """Map one outcome to its report rows.

    found → one FOUND row per location; not_found → one NOT_FOUND row;
    failed → one ERROR row with the reason in the Repo column.
    """
    if outcome.status == "found":
        return [
            ReportRow(
                package=candidate.package,
                version=candidate.version,
                filename=candidate.filename,
                status="FOUND",
                repo=loc.repo,
                path=loc.path,
            )
            for loc in outcome.locations
        ]
    if outcome.status == "not_found":
        return [
            ReportRow(
                package=candidate.package,
                version=candidate.version,
                filename=candidate.filename,
                status="NOT_FOUND",
            )
        ]
    return [
        ReportRow(
            package=candidate.package,
            version=candidate.version,
            filename=candidate.filename,
            status="ERROR",
            repo=outcome.reason or "unknown error",
        )
    ]


class ReportAggregator:
    """Buffers results by candidate index and re-serializes them in order."""

    def __init__(self, candidates: Sequence[Candidate]) -> None:
        self._candidates = list(candidates)
        self._outcomes: dict[int, QueryOutcome] = {}

    def add(self, result: DispatchResult) -> None:
        if not 0 <= result.index < len(self._candidates):
            raise ValueError(f"result index {result.index} out of range")
        if self._candidates[result.index] != result.candidate:
            raise ValueError(f"result index {result.index} does not match its candidate")
        if result.index in self._outcomes:
            raise ValueError(f"duplicate result for {result.candidate.filename}")
        self._outcomes[result.index] = result.outcome

    @property
    def received(self) -> int:
        return len(self._outcomes)

    def build(self, partial_reason: str | None = None) -> ScanReport:
        """Emit rows in normalized candidate order.

        Candidates without an outcome are left out and listed in
        :attr:`ScanReport.missing`; the report is then partial.
        """
        rows: list[ReportRow] = []
        missing: list[str] = []
        found = errors = 0
        for index, candidate in enumerate(self._candidates):
            outcome = self._outcomes.get(index)
            if outcome is None:
                missing.append(candidate.filename)
                continue
            if outcome.status == "found":
                found += 1
            elif outcome.status == "failed":
                errors += 1
            rows.extend(rows_for(candidate, outcome))

        return ScanReport(
            rows=tuple(rows),
            total_candidates=len(self._candidates),
            processed_candidates=len(self._outcomes),
            found_candidates=found,
            error_candidates=errors,
            partial_reason=partial_reason,
            missing=tuple(missing),
        )


async def aggregate(
    candidates: Sequence[Candidate],
    stream: AsyncIterable[DispatchResult],
    *,
    partial_reason: str | None = None,
) -> ScanReport:
    """Drain a dispatch stream and build the ordered report."""
    aggregator = ReportAggregator(candidates)
    async for result in stream:
        aggregator.add(result)
    report = aggregator.build(partial_reason)
    log.info(
        "report.aggregated",
        rows=len(report.rows),
        candidates=report.total_candidates,
        processed=report.processed_candidates,
    )
    return report


def found_rows(report: ScanReport) -> list[ReportRow]:
    return [row for row in report.rows if row.status == "FOUND"]
