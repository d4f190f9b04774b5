"""Registry of job ids a worker pool currently owns."""
from __future__ import annotations

from typing import FrozenSet, Set


class ActiveJobRegistry:
    """In-memory claim set guarding against duplicate sessions for one job.

    Claims only hold within the process that made them; two pools sharing a
    store each keep their own registry. Pass a shared instance to pools that
    should see each other's claims.
    """

    def __init__(self) -> None:
        self._active: Set[str] = set()

    def claim(self, job_id: str) -> bool:
        """Take ownership of ``job_id``; False if it is already held."""
        if job_id in self._active:
            return False
        self._active.add(job_id)
        return True

    def release(self, job_id: str) -> None:
        self._active.discard(job_id)

    def snapshot(self) -> FrozenSet[str]:
        return frozenset(self._active)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._active

    def __len__(self) -> int:
        return len(self._active)
