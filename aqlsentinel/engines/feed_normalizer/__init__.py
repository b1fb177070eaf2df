"""Feed normalizer engine: threat-intel CSV to query candidates."""

from aqlsentinel.engines.feed_normalizer.models import Candidate, FeedRecord
from aqlsentinel.engines.feed_normalizer.normalizer import (
    candidate_pairs,
    clean_package,
    dedupe,
    derive_filename,
    normalize,
    parse_feed,
    split_versions,
)

__all__ = [
    "Candidate",
    "FeedRecord",
    "candidate_pairs",
    "clean_package",
    "dedupe",
    "derive_filename",
    "normalize",
    "parse_feed",
    "split_versions",
]
