"""Async Artifactory AQL client with retries and exponential backoff."""

from __future__ import annotations

import asyncio

import httpx
import pydantic
import structlog

from aqlsentinel.engines.query_dispatcher.models import AqlItem, AqlResponse
from aqlsentinel.exceptions import AuthorizationError, QueryError

log = structlog.get_logger("aqlsentinel.engine")

_AQL_PATH = "api/search/aql"

_DEFAULT_MAX_RETRIES = 3
_DEFAULT_RETRY_BASE_DELAY = 1.0  # seconds
_MAX_RETRY_AFTER = 120  # seconds
_AUTH_STATUSES = (401, 403)


class ArtifactoryClient:
    """Thin async wrapper around the Artifactory AQL search endpoint."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30.0,
        max_retries: int = _DEFAULT_MAX_RETRIES,
        retry_base_delay: float = _DEFAULT_RETRY_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/artifactory/",
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "text/plain",
            },
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ArtifactoryClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def search(self, aql: str) -> list[AqlItem]:
        """Run an AQL query and return its result items in API order.

        Raises :class:`AuthorizationError` on 401/403 (never retried) and
        :class:`QueryError` once retries are exhausted or the server rejects
        the query outright.
        """
        return await self._request_with_retry(aql)

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(self, aql: str) -> list[AqlItem]:
        """POST with exponential backoff on 5xx, 429, timeouts and bad bodies."""
        last_exc: QueryError | None = None
        for attempt in range(self._max_retries):
            try:
                # httpx applies its timeout per phase; this bounds the whole call.
                resp = await asyncio.wait_for(
                    self._client.post(_AQL_PATH, content=aql), timeout=self._timeout
                )
            except asyncio.TimeoutError:
                log.warning(
                    "aql.timeout",
                    timeout=self._timeout,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                )
                last_exc = QueryError(f"timed out after {self._timeout:g}s")
            except httpx.RequestError as exc:
                log.warning(
                    "aql.transport_error",
                    error=f"{type(exc).__name__}: {exc}",
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                )
                last_exc = QueryError(f"transport error: {type(exc).__name__}")
            else:
                if resp.status_code in _AUTH_STATUSES:
                    raise AuthorizationError(resp.status_code)

                # 429 → sleep for Retry-After and retry, unless this was the last attempt
                if resp.status_code == 429:
                    wait = self._get_retry_after(resp)
                    log.warning(
                        "aql.rate_limit",
                        wait_seconds=wait,
                        attempt=attempt + 1,
                        max_retries=self._max_retries,
                    )
                    last_exc = QueryError("rate limited (HTTP 429)")
                    if attempt < self._max_retries - 1:
                        await asyncio.sleep(wait)
                    continue

                if resp.status_code >= 500:
                    log.warning(
                        "aql.server_error",
                        status=resp.status_code,
                        attempt=attempt + 1,
                        max_retries=self._max_retries,
                    )
                    last_exc = QueryError(f"server error (HTTP {resp.status_code})")
                elif resp.status_code >= 400:
                    raise QueryError(f"query rejected (HTTP {resp.status_code})")
                else:
                    try:
                        return AqlResponse.model_validate_json(resp.content).results
                    except pydantic.ValidationError:
                        log.warning(
                            "aql.malformed_response",
                            status=resp.status_code,
                            attempt=attempt + 1,
                            max_retries=self._max_retries,
                        )
                        last_exc = QueryError("malformed response body")

            if attempt < self._max_retries - 1:
                delay = self._retry_base_delay * (2**attempt)
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    @staticmethod
    def _get_retry_after(response: httpx.Response) -> int:
        """Seconds to wait after a 429, from ``Retry-After`` when present."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return min(max(int(retry_after), 1), _MAX_RETRY_AFTER)
            except (ValueError, TypeError):
                pass
        return 5
