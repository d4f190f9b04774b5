"""JSON document job store for sharing jobs between CLI processes.

The whole table lives in one file that is re-read on every operation and
replaced atomically on every write. Writers in separate processes are not
serialised against each other; the last writer wins.
"""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Dict, List

import orjson

from mailcrawl.errors import JobNotFound, StoreError
from mailcrawl.orchestrator.jobs import Job, JobStatus
from mailcrawl.storage.base import JobStore, apply_update, select_by_status

_SCHEMA_VERSION = 1


class JsonFileJobStore(JobStore):
    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, Job]:
        if not self._path.exists():
            return {}
        try:
            payload = orjson.loads(self._path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as exc:
            raise StoreError(f"Cannot read job store {self._path}: {exc}") from exc
        if payload.get("version") != _SCHEMA_VERSION:
            raise StoreError(f"Unsupported job store version in {self._path}")
        return {job_id: Job.model_validate(data) for job_id, data in payload.get("jobs", {}).items()}

    def _write(self, jobs: Dict[str, Job]) -> None:
        payload = {
            "version": _SCHEMA_VERSION,
            "jobs": {job_id: job.to_payload() for job_id, job in jobs.items()},
        }
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StoreError(f"Cannot write job store {self._path}: {exc}") from exc

    async def _load(self) -> Dict[str, Job]:
        return await asyncio.to_thread(self._read)

    async def _persist(self, jobs: Dict[str, Job]) -> None:
        await asyncio.to_thread(self._write, jobs)

    async def create(self, job_id: str, url: str, **fields: object) -> Job:
        async with self._lock:
            jobs = await self._load()
            if job_id in jobs:
                raise StoreError(f"Job {job_id} already exists")
            job = Job(job_id=job_id, url=url, status=JobStatus.QUEUED, **fields)
            jobs[job_id] = job
            await self._persist(jobs)
            return job

    async def update(self, job_id: str, **fields: object) -> Job:
        async with self._lock:
            jobs = await self._load()
            current = jobs.get(job_id)
            if current is None:
                raise JobNotFound(job_id)
            updated = apply_update(current, fields)
            jobs[job_id] = updated
            await self._persist(jobs)
            return updated

    async def get(self, job_id: str) -> Job:
        jobs = await self._load()
        if job_id not in jobs:
            raise JobNotFound(job_id)
        return jobs[job_id]

    async def list_by_status(
        self,
        status: JobStatus,
        *,
        oldest_first: bool = True,
        limit: int = 100,
    ) -> List[Job]:
        jobs = await self._load()
        return select_by_status(list(jobs.values()), status, oldest_first=oldest_first, limit=limit)
