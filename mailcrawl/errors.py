"""Exception hierarchy shared by the crawl, storage and scheduling layers."""
from __future__ import annotations


class MailcrawlError(Exception):
    """Base class for every error raised by mailcrawl."""


class ValidationError(MailcrawlError):
    """A seed URL was rejected before any job record was created."""


class StoreError(MailcrawlError):
    """The job store is unavailable or refused a write."""


class InvalidTransition(StoreError):
    """A status change would move a job backwards or touch a terminal record."""


class JobNotFound(MailcrawlError):
    """No job record exists for the requested identifier."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class FetchError(MailcrawlError):
    """A single page could not be loaded; the crawl carries on without it."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class SessionError(MailcrawlError):
    """The fetch capability itself could not run; fatal for the job."""


class RetryLimitReached(MailcrawlError):
    """A failed job has used up its resubmission budget."""
