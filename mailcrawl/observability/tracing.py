"""Tracing helpers for fetch and crawl stages."""
from __future__ import annotations

import contextlib
import time
from typing import Iterator, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


def _logger():
    return structlog.get_logger("mailcrawl.trace")


def set_context(*, job_id: str, url: str) -> None:
    bind_contextvars(job_id=job_id, seed_url=url)
    _logger().debug("trace_context", job_id=job_id, seed_url=url)


def clear_context() -> None:
    clear_contextvars()


@contextlib.contextmanager
def span(*, name: str, url: Optional[str] = None) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        _logger().debug("trace_span", span=name, url=url, elapsed_ms=elapsed_ms)


def log_retry(attempt: int, *, url: str, reason: str) -> None:
    _logger().warning("fetch_retry", attempt=attempt, url=url, reason=reason)


def log_fetch_result(*, url: str, kind: str, bytes_read: int, elapsed_ms: int) -> None:
    _logger().info(
        "fetch_result",
        url=url,
        kind=kind,
        bytes=bytes_read,
        elapsed_ms=elapsed_ms,
    )
