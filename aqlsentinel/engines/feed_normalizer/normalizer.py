"""Feed normalizer: CSV feed text to an ordered, deduplicated candidate list."""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterable

import structlog

from aqlsentinel.engines.feed_normalizer.models import Candidate, FeedRecord

log = structlog.get_logger("aqlsentinel.engine")

VERSION_DELIMITER = "||"
TARBALL_SUFFIX = ".tgz"

_PACKAGE_JUNK_RE = re.compile(r'["\s]')
_VERSION_JUNK_RE = re.compile(r'[\[\]"\s]')
_ADVISORY_SPLIT_RE = re.compile(r"[,;|\s]+")

# package, ecosystem, versions, advisory ids
_MIN_COLUMNS = 3


def parse_feed(text: str) -> list[FeedRecord]:
    """Parse feed CSV text into :class:`FeedRecord` instances.

    The first row is the header and is skipped. Blank rows and rows with
    fewer than three columns are dropped; the feed is known to carry
    placeholder lines.
    """
    records: list[FeedRecord] = []
    reader = csv.reader(io.StringIO(text))
    for row_number, row in enumerate(reader, start=1):
        if row_number == 1:
            continue
        if not any(cell.strip() for cell in row):
            continue
        if len(row) < _MIN_COLUMNS:
            log.debug("feed.row_dropped", row=row_number, reason="too few columns")
            continue
        advisories = row[3] if len(row) > 3 else ""
        records.append(
            FeedRecord(
                package=row[0],
                ecosystem=row[1].strip(),
                versions_raw=row[2],
                advisory_ids=_split_advisories(advisories),
            )
        )
    return records


def clean_package(raw: str) -> str:
    """Remove quotes and whitespace; the ``@scope/`` prefix is kept."""
    return _PACKAGE_JUNK_RE.sub("", raw)


def split_versions(raw: str) -> list[str]:
    """Split a ``["1.0.0||2.0.0"]``-style list into exact version strings.

    Brackets, quotes and whitespace are removed before splitting on the
    literal ``||``. Empty tokens are dropped.
    """
    cleaned = _VERSION_JUNK_RE.sub("", raw)
    return [v for v in cleaned.split(VERSION_DELIMITER) if v]


def derive_filename(package: str, version: str) -> str:
    """Return the npm tarball name for *package* at *version*.

    Everything up to and including the last ``/`` is dropped, so
    ``@scope/name`` becomes ``name``. Distinct scopes can therefore collapse
    to the same filename; that is accepted.
    """
    base = package.rsplit("/", 1)[-1]
    return f"{base}-{version}{TARBALL_SUFFIX}"


def dedupe(pairs: Iterable[tuple[str, str]], *, sort: bool = False) -> list[Candidate]:
    """Build candidates from ``(package, version)`` pairs.

    Pairs with an empty package or version are dropped. Duplicates keep the
    first occurrence, so output order follows input order unless *sort* is
    set, in which case candidates are ordered by ``(package, version)``.
    """
    seen: dict[tuple[str, str], Candidate] = {}
    for package, version in pairs:
        if not package or not version:
            continue
        key = (package, version)
        if key in seen:
            continue
        seen[key] = Candidate(
            package=package,
            version=version,
            filename=derive_filename(package, version),
        )
    candidates = list(seen.values())
    if sort:
        candidates.sort(key=lambda c: c.key)
    return candidates


def candidate_pairs(records: Iterable[FeedRecord]) -> Iterable[tuple[str, str]]:
    """Yield cleaned ``(package, version)`` pairs for every record."""
    for record in records:
        package = clean_package(record.package)
        for version in split_versions(record.versions_raw):
            yield package, version


def normalize(text: str, *, sort: bool = False) -> list[Candidate]:
    """Feed CSV text → ordered, deduplicated candidates."""
    records = parse_feed(text)
    candidates = dedupe(candidate_pairs(records), sort=sort)
    log.info("feed.normalized", records=len(records), candidates=len(candidates))
    return candidates


def _split_advisories(raw: str) -> tuple[str, ...]:
    cleaned = _VERSION_JUNK_RE.sub(" ", raw)
    return tuple(a for a in _ADVISORY_SPLIT_RE.split(cleaned) if a)
