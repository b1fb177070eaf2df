"""Shared pytest fixtures for aql-sentinel tests (no network required)."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from aqlsentinel.engines.feed_normalizer import Candidate, derive_filename

BASE_URL = "https://rt.example.com"
AQL_URL = f"{BASE_URL}/artifactory/api/search/aql"

SAMPLE_FEED = (
    "package_name,package_type,versions,xray_ids\n"
    '"@foo/bar","npm","[""1.0.0||2.0.0""]","XRAY-1"\n'
    '"left-pad","npm","[""1.3.0""]","XRAY-2, XRAY-3"\n'
)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def sample_feed() -> str:
    return SAMPLE_FEED


def make_candidate(package: str, version: str) -> Candidate:
    return Candidate(package=package, version=version, filename=derive_filename(package, version))


def aql_filename(request: httpx.Request) -> str:
    """Pull the filename out of an ``items.find({"name":{"$eq":...}})`` body."""
    body = request.content.decode()
    assert body.startswith("items.find(") and body.endswith(")")
    return json.loads(body[len("items.find(") : -1])["name"]["$eq"]


def aql_transport(
    index: dict[str, list[tuple[str, str]]],
    *,
    on_request: Callable[[httpx.Request], httpx.Response | None] | None = None,
) -> httpx.MockTransport:
    """Fake Artifactory: *index* maps filename → [(repo, path), ...]."""

    def handler(request: httpx.Request) -> httpx.Response:
        if on_request is not None:
            override = on_request(request)
            if override is not None:
                return override
        name = aql_filename(request)
        results = [{"repo": repo, "path": path, "name": name} for repo, path in index.get(name, [])]
        return httpx.Response(200, json={"results": results, "range": {"total": len(results)}})

    return httpx.MockTransport(handler)
