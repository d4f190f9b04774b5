"""Job-facing operations: submit, poll, resubmit and pool health."""
from __future__ import annotations

import uuid
from typing import Optional

import structlog
from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from mailcrawl.errors import RetryLimitReached, ValidationError
from mailcrawl.orchestrator.jobs import Job, JobStatus
from mailcrawl.orchestrator.pool import PoolStatus, WorkerPool
from mailcrawl.storage.base import JobStore

LOGGER = structlog.get_logger(__name__)

_URL_ADAPTER = TypeAdapter(HttpUrl)


def validate_seed_url(url: str) -> str:
    """Return ``url`` stripped, or raise :class:`ValidationError`."""
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("URL is required")
    candidate = url.strip()
    try:
        _URL_ADAPTER.validate_python(candidate)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid URL format: {candidate}") from exc
    return candidate


class JobService:
    """Thin facade the HTTP layer (or CLI) calls into."""

    def __init__(self, store: JobStore, pool: Optional[WorkerPool] = None) -> None:
        self.store = store
        self.pool = pool

    async def submit(self, url: str) -> str:
        """Validate ``url`` and create a ``queued`` job; returns its id."""
        seed = validate_seed_url(url)
        job_id = str(uuid.uuid4())
        await self.store.create(job_id, seed)
        LOGGER.info("job_queued", job_id=job_id, url=seed)
        return job_id

    async def poll(self, job_id: str) -> Job:
        """Return the current snapshot; unknown ids raise :class:`JobNotFound`."""
        return await self.store.get(job_id)

    async def resubmit(self, job_id: str) -> str:
        """Queue a fresh attempt for a failed job.

        The failed record stays as it is; the new record carries the same URL
        with ``retry_count`` incremented.
        """
        previous = await self.store.get(job_id)
        if previous.status != JobStatus.ERROR:
            raise ValidationError(f"Job {job_id} is {previous.status}; only failed jobs can be resubmitted")
        if previous.retry_count >= previous.max_retries:
            raise RetryLimitReached(f"Job {job_id} already retried {previous.retry_count} times")
        new_id = str(uuid.uuid4())
        await self.store.create(
            new_id,
            previous.url,
            retry_count=previous.retry_count + 1,
            max_retries=previous.max_retries,
        )
        LOGGER.info("job_resubmitted", job_id=new_id, previous_job_id=job_id, retry_count=previous.retry_count + 1)
        return new_id

    def pool_status(self) -> PoolStatus:
        if self.pool is None:
            return PoolStatus(running=False, active_jobs=0)
        return self.pool.status()
