"""Data models for the query dispatcher engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel

from aqlsentinel.engines.feed_normalizer.models import Candidate

OutcomeStatus = Literal["found", "not_found", "failed"]


# ── AQL wire format ──────────────────────────────────────────────────────


class AqlItem(BaseModel):
    """One entry of an AQL ``items.find`` result. Extra fields are ignored."""

    repo: str
    path: str
    name: str = ""


class AqlResponse(BaseModel):
    """Body of ``POST /api/search/aql``."""

    results: list[AqlItem]


# ── dispatch results ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    repo: str
    path: str
    name: str = ""


@dataclass(frozen=True)
class QueryOutcome:
    """Result of querying one candidate. Created once, never mutated."""

    status: OutcomeStatus
    locations: tuple[Location, ...] = ()
    reason: str | None = None
    auth_failure: bool = False

    @classmethod
    def found(cls, locations: tuple[Location, ...]) -> QueryOutcome:
        if not locations:
            raise ValueError("a found outcome needs at least one location")
        return cls(status="found", locations=tuple(locations))

    @classmethod
    def not_found(cls) -> QueryOutcome:
        return cls(status="not_found")

    @classmethod
    def failed(cls, reason: str, *, auth_failure: bool = False) -> QueryOutcome:
        return cls(status="failed", reason=reason, auth_failure=auth_failure)


@dataclass(frozen=True)
class DispatchResult:
    """A candidate, its position in the normalized list, and its outcome."""

    index: int
    candidate: Candidate
    outcome: QueryOutcome
