"""Observable views of a running batch.

Many unit tasks add and replace entries concurrently, so both collections
hand out snapshots rather than live references.
"""

from __future__ import annotations

import threading

from batch_capture.models.domain import CaptureUnit, Job, Screenshot


class JobRegistry:
    """Current Job of every started unit, keyed by case-insensitive job id.

    Replacing a job keeps its position, so snapshots list jobs in the order
    they were started.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def add(self, job: Job) -> None:
        with self._lock:
            if job.key in self._jobs:
                raise KeyError(f"Job {job.id} is already registered")
            self._jobs[job.key] = job

    def replace(self, job: Job) -> Job:
        """Swap in a newer value of a registered job, returning the old one."""
        with self._lock:
            previous = self._jobs.get(job.key)
            if previous is None:
                raise KeyError(f"Job {job.id} is not registered")
            self._jobs[job.key] = job
            return previous

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id.lower())

    def snapshot(self) -> list[Job]:
        with self._lock:
            return list(self._jobs.values())

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return isinstance(job_id, str) and job_id.lower() in self._jobs


class CompletedScreenshots:
    """Append-only list of screenshots whose handling has finished."""

    def __init__(self) -> None:
        self._items: list[Screenshot] = []
        self._lock = threading.Lock()

    def append(self, screenshot: Screenshot) -> None:
        with self._lock:
            self._items.append(screenshot)

    def snapshot(self) -> list[Screenshot]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


class CaptureUnitIndex:
    """Job id -> originating unit. Each key is written once, then only read."""

    def __init__(self) -> None:
        self._units: dict[str, CaptureUnit] = {}
        self._lock = threading.Lock()

    def register(self, job_id: str, unit: CaptureUnit) -> None:
        key = job_id.lower()
        with self._lock:
            if key in self._units:
                raise KeyError(f"Job {job_id} is already associated with a unit")
            self._units[key] = unit

    def get(self, job_id: str) -> CaptureUnit | None:
        return self._units.get(job_id.lower())

    def clear(self) -> None:
        with self._lock:
            self._units.clear()

    def __len__(self) -> int:
        return len(self._units)
