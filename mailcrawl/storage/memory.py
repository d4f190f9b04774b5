"""In-process job store."""
from __future__ import annotations

import asyncio
from typing import Dict, List

from mailcrawl.errors import JobNotFound, StoreError
from mailcrawl.orchestrator.jobs import Job, JobStatus
from mailcrawl.storage.base import JobStore, apply_update, select_by_status


class MemoryJobStore(JobStore):
    """Keeps records in a dict; suitable for tests and single-process runs."""

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = asyncio.Lock()

    async def create(self, job_id: str, url: str, **fields: object) -> Job:
        async with self._lock:
            if job_id in self._jobs:
                raise StoreError(f"Job {job_id} already exists")
            job = Job(job_id=job_id, url=url, status=JobStatus.QUEUED, **fields)
            self._jobs[job_id] = job
            return job.model_copy(deep=True)

    async def update(self, job_id: str, **fields: object) -> Job:
        async with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise JobNotFound(job_id)
            updated = apply_update(current, fields)
            self._jobs[job_id] = updated
            return updated.model_copy(deep=True)

    async def get(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job.model_copy(deep=True)

    async def list_by_status(
        self,
        status: JobStatus,
        *,
        oldest_first: bool = True,
        limit: int = 100,
    ) -> List[Job]:
        return select_by_status(list(self._jobs.values()), status, oldest_first=oldest_first, limit=limit)
