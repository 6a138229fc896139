"""Job persistence: the store interface and a thread-safe in-memory store."""

from __future__ import annotations

import itertools
import threading
from pathlib import Path
from typing import Any, Protocol

from secureapk.exceptions import JobNotFoundError
from secureapk.models.job import AnalysisJob


class JobStore(Protocol):
    """What the job runner needs from a persistence layer."""

    def create(
        self, *, file_name: str, file_size: int, source_path: Path
    ) -> AnalysisJob: ...

    def update(self, job_id: int, **changes: Any) -> AnalysisJob: ...

    def get(self, job_id: int) -> AnalysisJob: ...

    def delete(self, job_id: int) -> None: ...

    def list(self) -> list[AnalysisJob]: ...


class InMemoryJobStore:
    """Process-local job store.

    Jobs are stored as immutable snapshots; update() swaps in a new copy so
    callers never observe a half-written job.
    """

    def __init__(self) -> None:
        self._jobs: dict[int, AnalysisJob] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create(
        self, *, file_name: str, file_size: int, source_path: Path
    ) -> AnalysisJob:
        with self._lock:
            job = AnalysisJob(
                id=next(self._ids),
                file_name=file_name,
                file_size=file_size,
                source_path=source_path,
            )
            self._jobs[job.id] = job
        return job

    def update(self, job_id: int, **changes: Any) -> AnalysisJob:
        """Apply field changes to a job and return the new snapshot.

        Raises:
            JobNotFoundError: If job_id is unknown.
        """
        with self._lock:
            current = self._get_locked(job_id)
            updated = AnalysisJob.model_validate(
                {**current.model_dump(), **changes}
            )
            self._jobs[job_id] = updated
        return updated

    def get(self, job_id: int) -> AnalysisJob:
        with self._lock:
            return self._get_locked(job_id)

    def delete(self, job_id: int) -> None:
        with self._lock:
            self._get_locked(job_id)
            del self._jobs[job_id]

    def list(self) -> list[AnalysisJob]:
        """All jobs, newest first."""
        with self._lock:
            return sorted(self._jobs.values(), key=lambda job: job.id, reverse=True)

    def _get_locked(self, job_id: int) -> AnalysisJob:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobNotFoundError(job_id) from None
