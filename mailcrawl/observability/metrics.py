"""Crawl and scheduling counters plus a per-job outcome ledger."""
from __future__ import annotations

import contextlib
import time
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List

import orjson
import structlog

LOGGER = structlog.get_logger(__name__)

COUNTERS = (
    "pages_fetched",
    "fetch_failures",
    "retries",
    "robots_disallow",
    "extract_failures",
    "emails_found",
    "facebook_urls_found",
    "jobs_claimed",
    "jobs_done",
    "jobs_failed",
    "cycle_errors",
    "terminal_write_retries",
    "crawl_duration_ms",
)


@dataclass(frozen=True)
class JobOutcome:
    """What one finished job contributed, as reported by the pool."""

    job_id: str
    status: str
    pages_crawled: int
    emails: int
    facebook_urls: int


class MetricsRegistry:
    """Counters for the current process.

    Unknown counter names are accepted so callers can add their own, but
    :data:`COUNTERS` are always present in snapshots. Finished jobs are kept
    in arrival order, newest ``max_outcomes`` only.
    """

    def __init__(self, *, max_outcomes: int = 500) -> None:
        self._counters: Counter = Counter({name: 0 for name in COUNTERS})
        self._outcomes: List[JobOutcome] = []
        self._max_outcomes = max_outcomes

    def incr(self, name: str, value: int = 1) -> None:
        self._counters[name] += value

    def get(self, name: str) -> int:
        return self._counters.get(name, 0)

    def record_outcome(self, outcome: JobOutcome) -> None:
        self._outcomes.append(outcome)
        del self._outcomes[: -self._max_outcomes]

    @property
    def outcomes(self) -> List[JobOutcome]:
        return list(self._outcomes)

    def snapshot(self) -> Dict[str, object]:
        """Counters, per-job outcomes and the email yield per crawled page."""
        pages = sum(outcome.pages_crawled for outcome in self._outcomes)
        emails = sum(outcome.emails for outcome in self._outcomes)
        return {
            "counters": dict(self._counters),
            "jobs": [asdict(outcome) for outcome in self._outcomes],
            "emails_per_page": round(emails / pages, 3) if pages else 0.0,
        }

    def export(self, *, path: Path) -> Path:
        """Write :meth:`snapshot` as JSON to ``path``."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = dict(self.snapshot(), generated_at=datetime.now(timezone.utc).isoformat())
        path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
        return path


@contextlib.contextmanager
def record_duration(registry: MetricsRegistry, metric_name: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        registry.incr(metric_name, elapsed_ms)
        LOGGER.debug("timer_stop", metric=metric_name, duration_ms=elapsed_ms)
