"""Tests for the query dispatcher (fake clients, no network)."""

from __future__ import annotations

import asyncio
import json

import pytest
from conftest import make_candidate

from aqlsentinel.engines.query_dispatcher import (
    AqlItem,
    Dispatcher,
    Location,
    QueryOutcome,
    dispatch,
    query_candidate,
)
from aqlsentinel.exceptions import AuthorizationError, QueryError


def _filename(aql: str) -> str:
    return json.loads(aql[len("items.find(") : -1])["name"]["$eq"]


class FakeClient:
    """Stand-in for ArtifactoryClient.search.

    *behaviour* maps filename → list of (repo, path), or an exception to raise.
    Unknown filenames return no results.
    """

    def __init__(self, behaviour=None, *, delay: float = 0.0) -> None:
        self.behaviour = behaviour or {}
        self.delay = delay
        self.queried: list[str] = []
        self.active = 0
        self.peak = 0

    async def search(self, aql: str) -> list[AqlItem]:
        name = _filename(aql)
        self.queried.append(name)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        result = self.behaviour.get(name, [])
        if isinstance(result, Exception):
            raise result
        return [AqlItem(repo=repo, path=path, name=name) for repo, path in result]


async def _collect(stream):
    return [r async for r in stream]


# ── TestQueryCandidate ────────────────────────────────────────────────────


class TestQueryCandidate:
    @pytest.mark.anyio
    async def test_zero_results_is_not_found(self):
        outcome = await query_candidate(FakeClient(), make_candidate("@foo/bar", "1.0.0"))
        assert outcome == QueryOutcome.not_found()

    @pytest.mark.anyio
    async def test_results_preserve_order(self):
        client = FakeClient({"bar-2.0.0.tgz": [("repo1", "a"), ("repo2", "b")]})
        outcome = await query_candidate(client, make_candidate("@foo/bar", "2.0.0"))
        assert outcome.status == "found"
        assert outcome.locations == (
            Location("repo1", "a", "bar-2.0.0.tgz"),
            Location("repo2", "b", "bar-2.0.0.tgz"),
        )

    @pytest.mark.anyio
    async def test_queries_derived_filename(self):
        client = FakeClient()
        await query_candidate(client, make_candidate("@accordproject/concerto-analysis", "3.24.1"))
        assert client.queried == ["concerto-analysis-3.24.1.tgz"]

    @pytest.mark.anyio
    async def test_query_error_becomes_failed(self):
        client = FakeClient({"pkg-1.0.0.tgz": QueryError("server error (HTTP 503)")})
        outcome = await query_candidate(client, make_candidate("pkg", "1.0.0"))
        assert outcome.status == "failed"
        assert outcome.reason == "server error (HTTP 503)"
        assert not outcome.auth_failure

    @pytest.mark.anyio
    async def test_auth_error_flagged(self):
        client = FakeClient({"pkg-1.0.0.tgz": AuthorizationError(401)})
        outcome = await query_candidate(client, make_candidate("pkg", "1.0.0"))
        assert outcome.status == "failed"
        assert outcome.auth_failure

    @pytest.mark.anyio
    async def test_unexpected_errors_propagate(self):
        client = FakeClient({"pkg-1.0.0.tgz": RuntimeError("bug")})
        with pytest.raises(RuntimeError):
            await query_candidate(client, make_candidate("pkg", "1.0.0"))


# ── TestDispatcher ────────────────────────────────────────────────────────


class TestDispatcher:
    @pytest.mark.anyio
    async def test_every_candidate_dispatched_once(self):
        candidates = [make_candidate(f"pkg{i}", "1.0.0") for i in range(20)]
        client = FakeClient(delay=0.001)
        results = await _collect(dispatch(client, candidates, concurrency=4))
        assert sorted(r.index for r in results) == list(range(20))
        assert sorted(client.queried) == sorted(c.filename for c in candidates)
        for r in results:
            assert candidates[r.index] == r.candidate

    @pytest.mark.anyio
    async def test_concurrency_bound(self):
        candidates = [make_candidate(f"pkg{i}", "1.0.0") for i in range(12)]
        client = FakeClient(delay=0.01)
        dispatcher = Dispatcher(client, concurrency=3)
        await _collect(dispatcher.run(candidates))
        assert client.peak <= 3
        assert dispatcher.max_in_flight <= 3
        assert client.peak > 1

    @pytest.mark.anyio
    async def test_concurrency_one_is_sequential(self):
        candidates = [make_candidate(f"pkg{i}", "1.0.0") for i in range(5)]
        client = FakeClient(delay=0.001)
        results = await _collect(dispatch(client, candidates, concurrency=1))
        assert client.peak == 1
        assert [r.index for r in results] == list(range(5))

    @pytest.mark.anyio
    async def test_empty_candidates(self):
        assert await _collect(dispatch(FakeClient(), [], concurrency=4)) == []

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            Dispatcher(FakeClient(), concurrency=0)

    @pytest.mark.anyio
    async def test_failure_does_not_block_others(self):
        candidates = [make_candidate("bad", "1.0.0"), make_candidate("good", "1.0.0")]
        client = FakeClient(
            {"bad-1.0.0.tgz": QueryError("transport error"), "good-1.0.0.tgz": [("r", "p")]}
        )
        results = {r.candidate.package: r.outcome for r in await _collect(dispatch(client, candidates))}
        assert results["bad"].status == "failed"
        assert results["good"].status == "found"

    @pytest.mark.anyio
    async def test_stop_set_before_run_issues_nothing(self):
        stop = asyncio.Event()
        stop.set()
        client = FakeClient()
        candidates = [make_candidate("pkg", "1.0.0")]
        assert await _collect(dispatch(client, candidates, stop=stop)) == []
        assert client.queried == []

    @pytest.mark.anyio
    async def test_stop_mid_run_lets_in_flight_finish(self):
        candidates = [make_candidate(f"pkg{i}", "1.0.0") for i in range(10)]
        client = FakeClient(delay=0.01)
        dispatcher = Dispatcher(client, concurrency=2)
        results = []
        async for result in dispatcher.run(candidates):
            results.append(result)
            if len(results) == 1:
                dispatcher.stop.set()
        # The other in-flight query still completes and is reported.
        assert 1 < len(results) < len(candidates)
        assert len(results) == len(client.queried)

    @pytest.mark.anyio
    async def test_auth_threshold_aborts(self):
        candidates = [make_candidate(f"pkg{i}", "1.0.0") for i in range(10)]
        client = FakeClient({c.filename: AuthorizationError(401) for c in candidates})
        dispatcher = Dispatcher(client, concurrency=1, auth_failure_threshold=3)
        results = await _collect(dispatcher.run(candidates))
        assert len(results) == 3
        assert all(r.outcome.auth_failure for r in results)
        assert dispatcher.stop.is_set()
        assert "3 consecutive" in dispatcher.abort_reason

    @pytest.mark.anyio
    async def test_auth_threshold_resets_on_success(self):
        names = ["a", "b", "ok", "c", "d"]
        candidates = [make_candidate(n, "1.0.0") for n in names]
        behaviour = {f"{n}-1.0.0.tgz": AuthorizationError(403) for n in names if n != "ok"}
        dispatcher = Dispatcher(FakeClient(behaviour), concurrency=1, auth_failure_threshold=3)
        results = await _collect(dispatcher.run(candidates))
        assert len(results) == 5
        assert dispatcher.abort_reason is None

    @pytest.mark.anyio
    async def test_auth_threshold_zero_disables_abort(self):
        candidates = [make_candidate(f"pkg{i}", "1.0.0") for i in range(6)]
        client = FakeClient({c.filename: AuthorizationError(401) for c in candidates})
        dispatcher = Dispatcher(client, concurrency=2, auth_failure_threshold=0)
        results = await _collect(dispatcher.run(candidates))
        assert len(results) == 6
        assert not dispatcher.stop.is_set()

    @pytest.mark.anyio
    async def test_worker_bug_surfaces(self):
        candidates = [make_candidate("pkg", "1.0.0")]
        client = FakeClient({"pkg-1.0.0.tgz": RuntimeError("bug")})
        with pytest.raises(RuntimeError):
            await _collect(dispatch(client, candidates))
