"""Bounded same-domain traversal for a single job.

A session walks outward from the seed URL breadth-first, visiting at most
``max_pages`` pages with at most ``max_concurrency`` fetches in flight. Each
visited page goes through the extraction policy and then contributes new
links: navigation and about/contact style links first, a handful of generic
same-domain links after that.

Failures on a single page never end the session. Only problems with the
fetch capability itself (a :class:`SessionError`) escape :meth:`run`.
"""
from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Set

import structlog

from mailcrawl.config import CrawlSettings, FetchSettings
from mailcrawl.errors import FetchError, SessionError
from mailcrawl.fetch.fetcher import fetch_page
from mailcrawl.fetch.robots import RobotsCache
from mailcrawl.fetch.session import FetchSession, open_fetch_session
from mailcrawl.normalize.urls import normalize_url, same_domain
from mailcrawl.observability.metrics import MetricsRegistry, record_duration
from mailcrawl.parse.content import PageContent
from mailcrawl.parse.extractor import extract_page
from mailcrawl.parse.links import discover_links

LOGGER = structlog.get_logger(__name__)


@dataclass
class CrawlResult:
    """Accumulated output of a session; dict keys keep first-seen order."""

    emails: Dict[str, None] = field(default_factory=dict)
    facebook_urls: Dict[str, None] = field(default_factory=dict)
    crawled_urls: List[str] = field(default_factory=list)

    @property
    def pages_crawled(self) -> int:
        return len(self.crawled_urls)

    def as_fields(self) -> Dict[str, object]:
        """Job-record fields for this result."""
        return {
            "emails": list(self.emails),
            "facebook_urls": list(self.facebook_urls),
            "crawled_urls": list(self.crawled_urls),
            "pages_crawled": self.pages_crawled,
        }


class CrawlSession:
    """Drives one job's traversal and owns its accumulators."""

    def __init__(
        self,
        seed_url: str,
        *,
        fetch: FetchSession,
        settings: Optional[CrawlSettings] = None,
        fetch_settings: Optional[FetchSettings] = None,
        metrics: Optional[MetricsRegistry] = None,
        robots: Optional[RobotsCache] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.seed_url = seed_url
        self.settings = settings or CrawlSettings()
        self.fetch_settings = fetch_settings or FetchSettings()
        self.metrics = metrics or MetricsRegistry()
        self.result = CrawlResult()
        self._fetch = fetch
        self._robots = robots
        self._clock = clock
        self._frontier: Deque[str] = deque()
        self._admitted: Set[str] = set()

    @property
    def admitted_count(self) -> int:
        return len(self._admitted)

    def enqueue(self, url: str) -> bool:
        """Admit ``url`` to the frontier.

        No-op for URLs outside the seed's domain, URLs already admitted and
        anything past the page budget.
        """
        if len(self._admitted) >= self.settings.max_pages:
            return False
        if not same_domain(url, self.seed_url):
            return False
        key = normalize_url(url)
        if key in self._admitted:
            return False
        self._admitted.add(key)
        self._frontier.append(url)
        return True

    def _enqueue_capped(self, urls: List[str], limit: int) -> int:
        admitted = 0
        for url in urls:
            if admitted >= limit:
                break
            if self.enqueue(url):
                admitted += 1
        return admitted

    def _record(self, content: PageContent) -> None:
        extraction = extract_page(content)
        for email in extraction.emails:
            self.result.emails.setdefault(email, None)
        for profile in extraction.facebook_urls:
            self.result.facebook_urls.setdefault(profile, None)
        self.metrics.incr("emails_found", len(extraction.emails))
        self.metrics.incr("facebook_urls_found", len(extraction.facebook_urls))
        LOGGER.info(
            "page_extracted",
            url=content.url,
            emails=len(extraction.emails),
            facebook_urls=len(extraction.facebook_urls),
        )

    def _discover(self, content: PageContent) -> None:
        candidates = discover_links(content, seed_url=self.seed_url)
        self._enqueue_capped(candidates.priority, self.settings.nav_link_limit)
        self._enqueue_capped(candidates.fallback, self.settings.fallback_link_limit)

    async def _visit(self, url: str) -> None:
        try:
            content = await fetch_page(
                self._fetch,
                url,
                metrics=self.metrics,
                retries=self.fetch_settings.retries,
                retry_delay=self.fetch_settings.retry_delay_seconds,
                robots=self._robots,
            )
        except FetchError as exc:
            LOGGER.warning("page_fetch_failed", url=url, reason=exc.reason)
            return
        except SessionError:
            raise
        except Exception as exc:
            self.metrics.incr("fetch_failures")
            LOGGER.exception("page_fetch_failed", url=url, reason=str(exc) or type(exc).__name__)
            return

        self.result.crawled_urls.append(url)
        try:
            self._record(content)
            self._discover(content)
        except Exception:
            self.metrics.incr("extract_failures")
            LOGGER.exception("page_extract_failed", url=url)

    def _out_of_time(self, started: float) -> bool:
        limit = self.settings.max_duration_seconds
        return bool(limit) and self._clock() - started >= limit

    async def run(self) -> CrawlResult:
        """Traverse from the seed until the budget or the frontier runs out."""
        self.enqueue(self.seed_url)
        started = self._clock()
        with record_duration(self.metrics, "crawl_duration_ms"):
            while self._frontier:
                if self._out_of_time(started):
                    LOGGER.warning(
                        "crawl_time_budget_exhausted",
                        seed_url=self.seed_url,
                        pages_crawled=self.result.pages_crawled,
                    )
                    break
                wave = [
                    self._frontier.popleft()
                    for _ in range(min(self.settings.max_concurrency, len(self._frontier)))
                ]
                outcomes = await asyncio.gather(
                    *(self._visit(url) for url in wave),
                    return_exceptions=True,
                )
                # the whole wave settles before a capability failure ends the session
                for outcome in outcomes:
                    if isinstance(outcome, BaseException):
                        raise outcome
        LOGGER.info(
            "crawl_finished",
            seed_url=self.seed_url,
            pages_crawled=self.result.pages_crawled,
            emails=len(self.result.emails),
            facebook_urls=len(self.result.facebook_urls),
        )
        return self.result


async def crawl_site(
    seed_url: str,
    *,
    crawl_settings: Optional[CrawlSettings] = None,
    fetch_settings: Optional[FetchSettings] = None,
    fetch_session_factory=open_fetch_session,
    metrics: Optional[MetricsRegistry] = None,
) -> CrawlResult:
    """Run a single crawl outside the job machinery."""
    fetch_settings = fetch_settings or FetchSettings()
    async with fetch_session_factory(fetch_settings) as fetch:
        robots = None
        if fetch_settings.respect_robots:
            robots = RobotsCache(user_agent=fetch_settings.user_agent, client=fetch.client)
        session = CrawlSession(
            seed_url,
            fetch=fetch,
            settings=crawl_settings,
            fetch_settings=fetch_settings,
            metrics=metrics,
            robots=robots,
        )
        return await session.run()
