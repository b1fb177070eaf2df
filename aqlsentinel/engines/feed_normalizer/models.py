"""Data models for the feed normalizer engine."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FeedRecord:
    """One row of the threat-intel feed, as published.

    ``ecosystem`` and ``advisory_ids`` are carried for traceability only.
    """

    package: str  # may be scoped: @scope/name
    ecosystem: str
    versions_raw: str  # e.g. ["1.0.0||2.0.0"]
    advisory_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class Candidate:
    """A (package, exact version) pair and the tarball name it would produce."""

    package: str
    version: str
    filename: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.package, self.version)
