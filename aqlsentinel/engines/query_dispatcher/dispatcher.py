"""Query dispatcher: bounded-concurrency AQL existence checks."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing

import structlog

from aqlsentinel.engines.feed_normalizer.models import Candidate
from aqlsentinel.engines.query_dispatcher.artifactory_client import ArtifactoryClient
from aqlsentinel.engines.query_dispatcher.models import DispatchResult, Location, QueryOutcome
from aqlsentinel.exceptions import AuthorizationError, QueryError

log = structlog.get_logger("aqlsentinel.engine")

_DEFAULT_CONCURRENCY = 8
_DEFAULT_AUTH_FAILURE_THRESHOLD = 5


def build_aql_query(filename: str) -> str:
    """``items.find`` with an exact-equality predicate on the artifact name."""
    predicate = json.dumps({"name": {"$eq": filename}}, separators=(",", ":"))
    return f"items.find({predicate})"


async def query_candidate(client: ArtifactoryClient, candidate: Candidate) -> QueryOutcome:
    """Query one candidate; per-query errors become a failed outcome."""
    try:
        items = await client.search(build_aql_query(candidate.filename))
    except AuthorizationError as exc:
        log.error("dispatch.unauthorized", filename=candidate.filename, status=exc.status_code)
        return QueryOutcome.failed(str(exc), auth_failure=True)
    except QueryError as exc:
        log.warning("dispatch.query_failed", filename=candidate.filename, error=str(exc))
        return QueryOutcome.failed(str(exc))

    if not items:
        return QueryOutcome.not_found()
    return QueryOutcome.found(
        tuple(Location(repo=item.repo, path=item.path, name=item.name) for item in items)
    )


class Dispatcher:
    """Worker pool draining a candidate queue into a result queue.

    At most *concurrency* queries are in flight. Setting :attr:`stop` makes
    workers stop taking new candidates; in-flight queries still complete and
    are yielded. After *auth_failure_threshold* consecutive authorization
    failures the dispatcher sets :attr:`stop` itself (0 disables this).
    """

    def __init__(
        self,
        client: ArtifactoryClient,
        *,
        concurrency: int = _DEFAULT_CONCURRENCY,
        auth_failure_threshold: int = _DEFAULT_AUTH_FAILURE_THRESHOLD,
        stop: asyncio.Event | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self._client = client
        self._concurrency = concurrency
        self._auth_failure_threshold = auth_failure_threshold
        self.stop = stop if stop is not None else asyncio.Event()
        self.abort_reason: str | None = None
        self.in_flight = 0
        self.max_in_flight = 0
        self._consecutive_auth_failures = 0

    async def run(self, candidates: Sequence[Candidate]) -> AsyncIterator[DispatchResult]:
        """Yield a :class:`DispatchResult` per processed candidate, in completion order."""
        if not candidates:
            return

        work: asyncio.Queue[tuple[int, Candidate]] = asyncio.Queue()
        for item in enumerate(candidates):
            work.put_nowait(item)
        results: asyncio.Queue[DispatchResult | None] = asyncio.Queue()

        n_workers = min(self._concurrency, len(candidates))
        workers = [
            asyncio.create_task(self._worker(work, results), name=f"aql-worker-{i}")
            for i in range(n_workers)
        ]
        try:
            remaining = n_workers
            while remaining:
                result = await results.get()
                if result is None:
                    remaining -= 1
                    continue
                yield result
            # Surface unexpected worker failures.
            await asyncio.gather(*workers)
        finally:
            for task in workers:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(
        self,
        work: asyncio.Queue[tuple[int, Candidate]],
        results: asyncio.Queue[DispatchResult | None],
    ) -> None:
        try:
            while not self.stop.is_set():
                try:
                    index, candidate = work.get_nowait()
                except asyncio.QueueEmpty:
                    break
                self.in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self.in_flight)
                try:
                    outcome = await query_candidate(self._client, candidate)
                finally:
                    self.in_flight -= 1
                self._track_auth(outcome)
                await results.put(DispatchResult(index, candidate, outcome))
        finally:
            # Sentinel: this worker is done.
            results.put_nowait(None)

    def _track_auth(self, outcome: QueryOutcome) -> None:
        if not outcome.auth_failure:
            self._consecutive_auth_failures = 0
            return
        self._consecutive_auth_failures += 1
        threshold = self._auth_failure_threshold
        if threshold and self._consecutive_auth_failures >= threshold and not self.stop.is_set():
            self.abort_reason = (
                f"aborted after {self._consecutive_auth_failures} consecutive "
                "authorization failures"
            )
            log.error("dispatch.auth_abort", consecutive=self._consecutive_auth_failures)
            self.stop.set()


async def dispatch(
    client: ArtifactoryClient,
    candidates: Sequence[Candidate],
    *,
    concurrency: int = _DEFAULT_CONCURRENCY,
    stop: asyncio.Event | None = None,
    auth_failure_threshold: int = _DEFAULT_AUTH_FAILURE_THRESHOLD,
) -> AsyncIterator[DispatchResult]:
    """Convenience wrapper around :meth:`Dispatcher.run`."""
    dispatcher = Dispatcher(
        client,
        concurrency=concurrency,
        auth_failure_threshold=auth_failure_threshold,
        stop=stop,
    )
    async with aclosing(dispatcher.run(candidates)) as results:
        async for result in results:
            yield result
