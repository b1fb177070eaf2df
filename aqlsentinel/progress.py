"""Progress tracking for a scan run: pipeline phases plus a candidate counter."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Literal

import structlog

log = structlog.get_logger("aqlsentinel.progress")

PhaseStatus = Literal["running", "completed", "failed", "skipped"]

# Pipeline order; used to number phase lines as [n/4].
SCAN_PHASES = ("fetch", "normalize", "query", "report")


@dataclass
class PhaseProgress:
    phase: str
    status: PhaseStatus = "running"
    start_time: float | None = None
    end_time: float | None = None
    detail: str = ""
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.start_time is not None and self.end_time is not None:
            return round(self.end_time - self.start_time, 2)
        return None

    @property
    def step(self) -> str:
        if self.phase in SCAN_PHASES:
            return f"[{SCAN_PHASES.index(self.phase) + 1}/{len(SCAN_PHASES)}]"
        return ""


def format_phase(p: PhaseProgress) -> str:
    """One human-readable line for a phase transition, e.g. ``[2/4] normalize: completed``."""
    line = f"{p.step} {p.phase}: {p.status}".lstrip()
    if p.duration is not None:
        line += f" in {p.duration}s"
    extra = p.error or p.detail
    if extra:
        line += f" ({extra})"
    return line


class ProgressTracker:
    """Records phase transitions and per-candidate progress.

    Every phase transition is logged as ``scan.phase`` and passed to the
    callbacks; a failing callback is logged and otherwise ignored.
    """

    def __init__(self) -> None:
        self.phases: list[PhaseProgress] = []
        self._by_name: dict[str, PhaseProgress] = {}
        self.callbacks: list[Callable[[PhaseProgress], None]] = []
        self.total = 0
        self.done = 0

    # ── phases ──

    def start_phase(self, phase: str) -> None:
        p = PhaseProgress(phase=phase, start_time=time.monotonic())
        self._record(p)

    def complete_phase(self, phase: str, detail: str = "") -> None:
        p = self._by_name.get(phase)
        if p:
            p.status = "completed"
            p.end_time = time.monotonic()
            p.detail = detail
            self._notify(p)

    def fail_phase(self, phase: str, error: str) -> None:
        p = self._by_name.get(phase)
        if p:
            p.status = "failed"
            p.end_time = time.monotonic()
            p.error = error
            self._notify(p)

    def skip_phase(self, phase: str, reason: str) -> None:
        self._record(PhaseProgress(phase=phase, status="skipped", detail=reason))

    # ── candidates ──

    def set_total(self, total: int) -> None:
        self.total = total
        self.done = 0

    def advance(self, filename: str) -> None:
        self.done += 1
        log.info("scan.progress", done=self.done, total=self.total, filename=filename)

    def get_summary(self) -> dict[str, Any]:
        return {
            "phases": [
                {
                    "phase": p.phase,
                    "status": p.status,
                    "duration": p.duration,
                    "detail": p.detail,
                    "error": p.error,
                }
                for p in self.phases
            ],
            "candidates": {"done": self.done, "total": self.total},
            "total_duration": round(sum(p.duration or 0 for p in self.phases), 2),
        }

    def _record(self, p: PhaseProgress) -> None:
        self.phases.append(p)
        self._by_name[p.phase] = p
        self._notify(p)

    def _notify(self, p: PhaseProgress) -> None:
        log.info(
            "scan.phase",
            step=p.step,
            phase=p.phase,
            status=p.status,
            detail=p.detail,
            error=p.error,
            duration=p.duration,
        )
        for cb in self.callbacks:
            try:
                cb(p)
            except Exception:
                log.debug("progress.callback_error", phase=p.phase, exc_info=True)
