"""Definitions for crawl jobs and their lifecycle."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(StrEnum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({JobStatus.DONE, JobStatus.ERROR})

_NEXT_STATUSES: Dict[JobStatus, frozenset] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.DONE, JobStatus.ERROR}),
    JobStatus.DONE: frozenset(),
    JobStatus.ERROR: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Return True when ``target`` is a legal next status for ``current``."""
    return target in _NEXT_STATUSES[current]


class Job(BaseModel):
    """A crawl-and-extract request and whatever it has accumulated so far."""

    job_id: str = Field(min_length=1)
    url: str = Field(min_length=1)
    status: JobStatus = JobStatus.QUEUED
    emails: List[str] = Field(default_factory=list)
    facebook_urls: List[str] = Field(default_factory=list)
    crawled_urls: List[str] = Field(default_factory=list)
    pages_crawled: int = Field(default=0, ge=0)
    error: Optional[str] = None
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_payload(self) -> Dict[str, object]:
        """Return a JSON-ready dict with ISO timestamps."""
        return self.model_dump(mode="json")
