"""ScanRunner: fetch → normalize → dispatch → aggregate → write."""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import httpx
import structlog

from aqlsentinel.core.config import ScanConfig
from aqlsentinel.core.feed import fetch_feed
from aqlsentinel.engines.feed_normalizer import normalize
from aqlsentinel.engines.query_dispatcher import ArtifactoryClient, DispatchResult, Dispatcher
from aqlsentinel.engines.report_aggregator import ReportAggregator, ScanReport, write_report
from aqlsentinel.exceptions import FeedFetchError
from aqlsentinel.progress import ProgressTracker

log = structlog.get_logger("aqlsentinel.runner")

_INTERRUPTED = "interrupted by operator"


class ScanRunner:
    """Runs one audit pass against a single Artifactory instance.

    :meth:`cancel` (or SIGINT/SIGTERM while :meth:`run` is active) stops new
    queries; in-flight queries finish and the partial report is still
    written, marked as such.
    """

    def __init__(
        self,
        config: ScanConfig,
        *,
        progress: ProgressTracker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        handle_signals: bool = True,
    ) -> None:
        self.config = config
        self.progress = progress or ProgressTracker()
        self.stop = asyncio.Event()
        self.report_path: Path | None = None
        self._transport = transport
        self._handle_signals = handle_signals

    def cancel(self) -> None:
        if not self.stop.is_set():
            log.warning("scan.cancel_requested")
        self.stop.set()

    async def run(self, feed_text: str | None = None) -> ScanReport:
        """Execute the pipeline and return the report written to disk.

        *feed_text* skips the network fetch. Setup errors (feed download)
        propagate; per-query errors end up as ERROR rows.
        """
        cfg = self.config

        # ── 1. feed ──
        if feed_text is None:
            self.progress.start_phase("fetch")
            try:
                feed_text = await fetch_feed(
                    cfg.feed_url, timeout=cfg.timeout, transport=self._transport
                )
            except FeedFetchError as exc:
                self.progress.fail_phase("fetch", str(exc))
                raise
            self.progress.complete_phase("fetch", detail=f"{len(feed_text)} chars")
        else:
            self.progress.skip_phase("fetch", "feed supplied by caller")

        # ── 2. normalize ──
        self.progress.start_phase("normalize")
        candidates = normalize(feed_text, sort=cfg.sort_candidates)
        self.progress.complete_phase("normalize", detail=f"{len(candidates)} candidates")
        log.info("scan.candidates", total=len(candidates))

        # ── 3. query ──
        self.progress.start_phase("query")
        self.progress.set_total(len(candidates))
        aggregator = ReportAggregator(candidates)
        with self._signal_handlers():
            async with ArtifactoryClient(
                cfg.base_url,
                cfg.token,
                timeout=cfg.timeout,
                max_retries=cfg.max_retries,
                retry_base_delay=cfg.retry_base_delay,
                transport=self._transport,
            ) as client:
                dispatcher = Dispatcher(
                    client,
                    concurrency=cfg.concurrency,
                    auth_failure_threshold=cfg.auth_failure_threshold,
                    stop=self.stop,
                )
                async for result in dispatcher.run(candidates):
                    aggregator.add(result)
                    self._on_result(result)

        partial_reason: str | None = None
        if aggregator.received < len(candidates):
            partial_reason = dispatcher.abort_reason or _INTERRUPTED
        if partial_reason:
            self.progress.fail_phase("query", partial_reason)
        else:
            self.progress.complete_phase("query", detail=f"{aggregator.received} queried")

        # ── 4. report ──
        self.progress.start_phase("report")
        report = aggregator.build(partial_reason)
        self.report_path = write_report(cfg.report_path, report)
        self.progress.complete_phase("report", detail=str(self.report_path))
        if report.missing:
            log.info("scan.unreported", count=len(report.missing), filenames=list(report.missing))
        log.info(
            "scan.complete",
            found=report.found_candidates,
            errors=report.error_candidates,
            total=report.total_candidates,
            partial=report.partial,
            unreported=len(report.missing),
            report=str(self.report_path),
        )
        return report

    def _on_result(self, result: DispatchResult) -> None:
        self.progress.advance(result.candidate.filename)
        if result.outcome.status == "found":
            log.warning(
                "scan.found",
                package=result.candidate.package,
                version=result.candidate.version,
                filename=result.candidate.filename,
                locations=len(result.outcome.locations),
            )

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        """Route SIGINT/SIGTERM to :meth:`cancel` for the duration of the block."""
        installed: list[signal.Signals] = []
        if self._handle_signals:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, self.cancel)
                except (NotImplementedError, RuntimeError, ValueError):
                    # Windows, or not on the main thread.
                    continue
                installed.append(sig)
        try:
            yield
        finally:
            if installed:
                loop = asyncio.get_running_loop()
                for sig in installed:
                    loop.remove_signal_handler(sig)
