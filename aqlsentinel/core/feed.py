"""Threat-intel feed retrieval."""

from __future__ import annotations

import httpx
import structlog

from aqlsentinel.exceptions import FeedFetchError

log = structlog.get_logger("aqlsentinel.feed")


async def fetch_feed(
    url: str,
    *,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Download the feed CSV and return it as text.

    Redirects are followed (the research feed is served behind one).
    Any transport error or non-2xx status raises :class:`FeedFetchError`.
    """
    log.info("feed.fetching", url=url)
    try:
        async with httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, transport=transport
        ) as client:
            resp = await client.get(url)
    except httpx.HTTPError as exc:
        raise FeedFetchError(url, f"{type(exc).__name__}: {exc}") from exc

    if not resp.is_success:
        raise FeedFetchError(url, f"HTTP {resp.status_code}")

    text = resp.text
    log.info("feed.fetched", url=url, bytes=len(resp.content))
    return text
