"""Backend selection for the job store."""
from __future__ import annotations

from mailcrawl.config import StorageSettings
from mailcrawl.storage.base import JobStore
from mailcrawl.storage.jsonfile import JsonFileJobStore
from mailcrawl.storage.memory import MemoryJobStore


def open_store(settings: StorageSettings) -> JobStore:
    if settings.backend == "memory":
        return MemoryJobStore()
    return JsonFileJobStore(settings.path)
