"""Query dispatcher engine: AQL existence queries under a concurrency bound."""

from aqlsentinel.engines.query_dispatcher.artifactory_client import ArtifactoryClient
from aqlsentinel.engines.query_dispatcher.dispatcher import (
    Dispatcher,
    build_aql_query,
    dispatch,
    query_candidate,
)
from aqlsentinel.engines.query_dispatcher.models import (
    AqlItem,
    AqlResponse,
    DispatchResult,
    Location,
    QueryOutcome,
)

__all__ = [
    "AqlItem",
    "AqlResponse",
    "ArtifactoryClient",
    "DispatchResult",
    "Dispatcher",
    "Location",
    "QueryOutcome",
    "build_aql_query",
    "dispatch",
    "query_candidate",
]
