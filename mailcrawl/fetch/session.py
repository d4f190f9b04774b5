"""Fetch sessions over httpx or a crawl4ai browser."""
from __future__ import annotations

import contextlib
from typing import AsyncIterator, Optional

import httpx

from mailcrawl.config import FetchSettings
from mailcrawl.errors import FetchError, SessionError
from mailcrawl.parse.content import PageContent, Raw, Rendered

_MARKUP_TYPES = ("text/html", "application/xhtml+xml", "text/plain")


class FetchSession:
    """Unified page source over crawl4ai rendering or plain httpx.

    ``fetch`` returns :class:`Rendered` when a browser produced the DOM and
    :class:`Raw` when the body came straight from HTTP. Transport problems
    surface as ``httpx.TransportError`` so the caller can retry; anything
    definitive about the page is a :class:`FetchError`.
    """

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        crawler=None,
        run_config=None,
    ) -> None:
        self._client = client
        self._crawler = crawler
        self._run_config = run_config

    @property
    def client(self) -> Optional[httpx.AsyncClient]:
        return self._client

    async def fetch(self, url: str) -> PageContent:
        if self._crawler is not None:
            return await self._render(url)
        if self._client is None:
            raise SessionError("No fetch backend available")
        return await self._download(url)

    async def _render(self, url: str) -> Rendered:
        try:
            result = await self._crawler.arun(url=url, config=self._run_config)
        except SessionError:
            raise
        except Exception as exc:
            # crawl4ai surfaces navigation and page errors as plain exceptions
            raise FetchError(url, str(exc) or type(exc).__name__) from exc
        if not result.success:
            raise FetchError(url, result.error_message or "render failed")
        status = getattr(result, "status_code", None)
        if status is not None and status >= 400:
            raise FetchError(url, f"HTTP {status}")
        return Rendered(url=url, html=result.html or "")

    async def _download(self, url: str) -> Raw:
        response = await self._client.get(url)
        if response.status_code >= 400:
            raise FetchError(url, f"HTTP {response.status_code}")
        content_type = response.headers.get("content-type", "text/html").lower()
        if not content_type.startswith(_MARKUP_TYPES):
            raise FetchError(url, f"unsupported content type {content_type}")
        return Raw(url=url, body=response.content, encoding=response.encoding or "utf-8")


@contextlib.asynccontextmanager
async def _browser_session(settings: FetchSettings) -> AsyncIterator[FetchSession]:
    try:
        from crawl4ai import AsyncWebCrawler, BrowserConfig, CrawlerRunConfig
    except ImportError as exc:
        raise SessionError("browser rendering needs the 'render' extra (crawl4ai)") from exc

    crawler = AsyncWebCrawler(config=BrowserConfig(headless=True, user_agent=settings.user_agent))
    try:
        await crawler.__aenter__()
    except Exception as exc:
        raise SessionError(f"could not start browser: {exc}") from exc
    run_config = CrawlerRunConfig(page_timeout=int(settings.timeout_seconds * 1000))
    try:
        yield FetchSession(crawler=crawler, run_config=run_config)
    finally:
        await crawler.__aexit__(None, None, None)


@contextlib.asynccontextmanager
async def open_fetch_session(settings: FetchSettings) -> AsyncIterator[FetchSession]:
    """Yield a configured :class:`FetchSession` for the duration of one job."""
    if settings.render_mode == "browser":
        async with _browser_session(settings) as session:
            yield session
        return
    headers = {"User-Agent": settings.user_agent}
    async with httpx.AsyncClient(
        headers=headers,
        timeout=settings.timeout_seconds,
        follow_redirects=True,
    ) as client:
        yield FetchSession(client=client)
