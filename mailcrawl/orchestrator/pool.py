"""Polling worker pool that turns queued jobs into crawl sessions.

Each cycle reads the oldest ``batch_size`` queued records, keeps the first
``max_concurrent_workers`` of them, claims any not already active and crawls
them concurrently. The cycle waits for all of its sessions before sleeping,
so a single pool never runs more than ``max_concurrent_workers`` sessions.
Claims are process-local; a second pool against the same store can pick the
same queued record.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional

import structlog

from mailcrawl.config import CrawlSettings, FetchSettings, PoolSettings
from mailcrawl.errors import InvalidTransition, JobNotFound, StoreError
from mailcrawl.fetch.robots import RobotsCache
from mailcrawl.fetch.session import open_fetch_session
from mailcrawl.observability.metrics import JobOutcome, MetricsRegistry
from mailcrawl.observability.tracing import clear_context, set_context
from mailcrawl.orchestrator.claims import ActiveJobRegistry
from mailcrawl.orchestrator.crawl_session import CrawlResult, CrawlSession
from mailcrawl.orchestrator.jobs import Job, JobStatus
from mailcrawl.storage.base import JobStore

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PoolStatus:
    running: bool
    active_jobs: int

    def as_dict(self) -> dict:
        return {"running": self.running, "active_jobs": self.active_jobs}


class WorkerPool:
    def __init__(
        self,
        store: JobStore,
        *,
        pool_settings: Optional[PoolSettings] = None,
        crawl_settings: Optional[CrawlSettings] = None,
        fetch_settings: Optional[FetchSettings] = None,
        fetch_session_factory=open_fetch_session,
        registry: Optional[ActiveJobRegistry] = None,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self.store = store
        self.pool_settings = pool_settings or PoolSettings()
        self.crawl_settings = crawl_settings or CrawlSettings()
        self.fetch_settings = fetch_settings or FetchSettings()
        self.registry = registry if registry is not None else ActiveJobRegistry()
        self.metrics = metrics or MetricsRegistry()
        self._fetch_session_factory = fetch_session_factory
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    def status(self) -> PoolStatus:
        return PoolStatus(running=self._running, active_jobs=len(self.registry))

    async def start(self) -> None:
        """Launch the poll loop in the background; no-op when already running."""
        if self._running:
            return
        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(None), name="mailcrawl-pool")
        LOGGER.info("pool_started", **self.pool_settings.model_dump())

    async def run(self, *, cycles: Optional[int] = None) -> None:
        """Run the poll loop in the caller's task until stopped or ``cycles`` ran."""
        if self._running:
            return
        self._running = True
        self._stop_event = asyncio.Event()
        LOGGER.info("pool_started", **self.pool_settings.model_dump())
        await self._loop(cycles)

    async def stop(self) -> None:
        """Stop launching sessions and wait for in-flight ones to finish."""
        if self._stop_event is not None:
            self._stop_event.set()
        self._running = False
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            await task

    async def _sleep(self, seconds: float) -> None:
        if self._stop_event is None or seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _loop(self, cycles: Optional[int]) -> None:
        tick = 0
        try:
            while self._running and (cycles is None or tick < cycles):
                try:
                    launched = await self.run_cycle()
                    delay = self.pool_settings.poll_interval_seconds
                    LOGGER.info("pool_cycle", launched=len(launched), **self.status().as_dict())
                except Exception:
                    self.metrics.incr("cycle_errors")
                    LOGGER.exception("pool_cycle_failed")
                    delay = self.pool_settings.error_backoff_seconds
                tick += 1
                if self._running and (cycles is None or tick < cycles):
                    await self._sleep(delay)
        finally:
            self._running = False
            LOGGER.info("pool_stopped", cycles=tick)

    async def run_cycle(self) -> List[str]:
        """Claim and crawl one batch of queued jobs; returns the launched ids."""
        queued = await self.store.list_by_status(
            JobStatus.QUEUED,
            oldest_first=True,
            limit=self.pool_settings.batch_size,
        )
        claimed: List[Job] = []
        for job in queued[: self.pool_settings.max_concurrent_workers]:
            if self.registry.claim(job.job_id):
                claimed.append(job)
        if not claimed:
            return []
        self.metrics.incr("jobs_claimed", len(claimed))
        await asyncio.gather(*(self._run_claimed(job) for job in claimed))
        return [job.job_id for job in claimed]

    async def _run_claimed(self, job: Job) -> None:
        try:
            await self.process_job(job)
        finally:
            self.registry.release(job.job_id)

    async def process_job(self, job: Job) -> None:
        """Crawl one claimed job and write its terminal state."""
        set_context(job_id=job.job_id, url=job.url)
        try:
            try:
                await self.store.update(job.job_id, status=JobStatus.PROCESSING)
            except (StoreError, JobNotFound) as exc:
                LOGGER.error("job_claim_failed", error=str(exc))
                return
            LOGGER.info("job_started")

            session: Optional[CrawlSession] = None
            try:
                async with self._fetch_session_factory(self.fetch_settings) as fetch:
                    robots = None
                    if self.fetch_settings.respect_robots:
                        robots = RobotsCache(user_agent=self.fetch_settings.user_agent, client=fetch.client)
                    session = CrawlSession(
                        job.url,
                        fetch=fetch,
                        settings=self.crawl_settings,
                        fetch_settings=self.fetch_settings,
                        metrics=self.metrics,
                        robots=robots,
                    )
                    result = await session.run()
            except Exception as exc:
                partial = session.result if session is not None else CrawlResult()
                message = str(exc) or type(exc).__name__
                LOGGER.error("job_failed", error=message, pages_crawled=partial.pages_crawled)
                self.metrics.incr("jobs_failed")
                await self._write_terminal(job.job_id, JobStatus.ERROR, partial, error=message)
                return

            self.metrics.incr("jobs_done")
            LOGGER.info(
                "job_completed",
                emails=len(result.emails),
                facebook_urls=len(result.facebook_urls),
                pages_crawled=result.pages_crawled,
            )
            await self._write_terminal(job.job_id, JobStatus.DONE, result)
        finally:
            clear_context()

    async def _write_terminal(
        self,
        job_id: str,
        status: JobStatus,
        result: CrawlResult,
        *,
        error: Optional[str] = None,
    ) -> bool:
        self.metrics.record_outcome(
            JobOutcome(
                job_id=job_id,
                status=str(status),
                pages_crawled=result.pages_crawled,
                emails=len(result.emails),
                facebook_urls=len(result.facebook_urls),
            )
        )
        fields = dict(result.as_fields(), status=status)
        if error is not None:
            fields["error"] = error
        attempts = self.pool_settings.terminal_write_attempts
        delay = self.pool_settings.terminal_write_backoff_seconds
        for attempt in range(1, attempts + 1):
            try:
                await self.store.update(job_id, **fields)
                return True
            except InvalidTransition as exc:
                LOGGER.critical("job_stuck_processing", job_id=job_id, error=str(exc))
                return False
            except JobNotFound:
                LOGGER.critical("job_stuck_processing", job_id=job_id, reason="record vanished")
                return False
            except StoreError as exc:
                if attempt == attempts:
                    LOGGER.critical(
                        "job_stuck_processing",
                        job_id=job_id,
                        target_status=str(status),
                        attempts=attempts,
                        error=str(exc),
                    )
                    return False
                self.metrics.incr("terminal_write_retries")
                LOGGER.warning("terminal_write_retry", job_id=job_id, attempt=attempt, error=str(exc))
                await asyncio.sleep(delay)
                delay *= 2
        return False
