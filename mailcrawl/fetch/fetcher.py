"""Page fetching with retries, robots checks and metrics."""
from __future__ import annotations

import asyncio
import time
from typing import Optional

import httpx
import structlog

from mailcrawl.errors import FetchError
from mailcrawl.fetch.robots import RobotsCache
from mailcrawl.fetch.session import FetchSession
from mailcrawl.observability.metrics import MetricsRegistry
from mailcrawl.observability.tracing import log_fetch_result, log_retry, span
from mailcrawl.parse.content import PageContent, Rendered, markup_of

LOGGER = structlog.get_logger(__name__)


async def fetch_page(
    session: FetchSession,
    url: str,
    *,
    metrics: MetricsRegistry,
    retries: int = 2,
    retry_delay: float = 1.0,
    robots: Optional[RobotsCache] = None,
) -> PageContent:
    """Fetch one page, retrying transport errors with a doubling delay.

    Raises :class:`FetchError` when the page cannot be obtained, including
    redirect loops, undecodable bodies and malformed URLs. Only
    :class:`SessionError` is left for the caller.
    """
    if robots is not None and not await robots.allowed(url):
        metrics.incr("robots_disallow")
        metrics.incr("fetch_failures")
        raise FetchError(url, "disallowed by robots.txt")

    delay = retry_delay
    for attempt in range(1, retries + 1):
        try:
            with span(name="fetch", url=url):
                start = time.perf_counter()
                content = await session.fetch(url)
        except httpx.TransportError as exc:
            if attempt == retries:
                metrics.incr("fetch_failures")
                raise FetchError(url, str(exc) or type(exc).__name__) from exc
            metrics.incr("retries")
            log_retry(attempt=attempt, url=url, reason=str(exc))
            await asyncio.sleep(delay)
            delay *= 2
            continue
        except FetchError:
            metrics.incr("fetch_failures")
            raise
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            metrics.incr("fetch_failures")
            raise FetchError(url, str(exc) or type(exc).__name__) from exc
        log_fetch_result(
            url=url,
            kind="rendered" if isinstance(content, Rendered) else "raw",
            bytes_read=len(markup_of(content)),
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )
        metrics.incr("pages_fetched")
        return content
    raise FetchError(url, "no fetch attempts configured")
