"""aql-sentinel: find compromised npm packages in an Artifactory instance."""

__version__ = "0.1.0"

from aqlsentinel.engines.feed_normalizer import Candidate, FeedRecord, normalize
from aqlsentinel.engines.query_dispatcher import ArtifactoryClient, QueryOutcome, dispatch
from aqlsentinel.engines.report_aggregator import ReportRow, ScanReport, aggregate
from aqlsentinel.runner import ScanRunner

__all__ = [
    "ArtifactoryClient",
    "Candidate",
    "FeedRecord",
    "QueryOutcome",
    "ReportRow",
    "ScanReport",
    "ScanRunner",
    "aggregate",
    "dispatch",
    "normalize",
]
