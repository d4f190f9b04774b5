"""Job store contract shared by every backend."""
from __future__ import annotations

import abc
from typing import Dict, List

from mailcrawl.errors import InvalidTransition, StoreError
from mailcrawl.orchestrator.jobs import Job, JobStatus, can_transition, utcnow

_IMMUTABLE_FIELDS = frozenset({"job_id", "url", "created_at"})
_RESULT_FIELDS = frozenset({"emails", "facebook_urls", "crawled_urls", "pages_crawled"})
_UPDATABLE_FIELDS = frozenset(Job.model_fields) - _IMMUTABLE_FIELDS


def apply_update(job: Job, fields: Dict[str, object]) -> Job:
    """Return a copy of ``job`` with ``fields`` applied and timestamps managed.

    Status may only move forward (``queued -> processing -> done|error``) and
    terminal records reject every further write.
    """
    unknown = set(fields) - _UPDATABLE_FIELDS
    if unknown:
        raise StoreError(f"Cannot update fields {sorted(unknown)} on job {job.job_id}")
    if job.is_terminal:
        raise InvalidTransition(f"Job {job.job_id} is already {job.status}")

    now = utcnow()
    changes = dict(fields)
    if _RESULT_FIELDS & set(changes) and job.status != JobStatus.PROCESSING:
        raise InvalidTransition(f"Job {job.job_id} only accumulates results while processing")
    if "status" in changes:
        target = JobStatus(changes["status"])
        if target != job.status and not can_transition(job.status, target):
            raise InvalidTransition(f"Job {job.job_id} cannot move from {job.status} to {target}")
        changes["status"] = target
        if target == JobStatus.PROCESSING and job.started_at is None:
            changes.setdefault("started_at", now)
        if target in (JobStatus.DONE, JobStatus.ERROR):
            changes.setdefault("completed_at", now)
        if target == JobStatus.DONE:
            changes["error"] = None
        if target == JobStatus.ERROR and not changes.get("error"):
            changes["error"] = "Unknown error occurred"
    changes["updated_at"] = now
    return Job.model_validate({**job.model_dump(), **changes})


class JobStore(abc.ABC):
    """Create/read/update access to job records keyed by ``job_id``."""

    @abc.abstractmethod
    async def create(self, job_id: str, url: str, **fields: object) -> Job:
        """Insert a ``queued`` record; duplicate ids raise :class:`StoreError`."""

    @abc.abstractmethod
    async def update(self, job_id: str, **fields: object) -> Job:
        """Apply a partial update; unknown ids raise :class:`JobNotFound`."""

    @abc.abstractmethod
    async def get(self, job_id: str) -> Job:
        """Return a snapshot of the record; unknown ids raise :class:`JobNotFound`."""

    @abc.abstractmethod
    async def list_by_status(
        self,
        status: JobStatus,
        *,
        oldest_first: bool = True,
        limit: int = 100,
    ) -> List[Job]:
        """Return up to ``limit`` records in ``status`` ordered by ``created_at``."""

    async def close(self) -> None:
        return None


def select_by_status(jobs: List[Job], status: JobStatus, *, oldest_first: bool, limit: int) -> List[Job]:
    matching = [job for job in jobs if job.status == status]
    matching.sort(key=lambda job: job.created_at, reverse=not oldest_first)
    return [job.model_copy(deep=True) for job in matching[:limit]]
