"""Batch capture orchestration.

Captures screenshots for many URLs in many browsers with one call. Every
split unit gets its own task; tasks wait for an admission slot, submit their
job, follow it to completion and release the slot whatever happened. A
failure in one unit is reported through events and never stops the others.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from batch_capture.capture.admission import AdmissionGate
from batch_capture.capture.events import (
    BatchEvent,
    EventBus,
    JobCompleted,
    JobFailed,
    JobFailedToStart,
    JobStarted,
)
from batch_capture.capture.persistence import ScreenshotPersister
from batch_capture.capture.poller import JobPoller
from batch_capture.capture.progress import CaptureUnitIndex, CompletedScreenshots, JobRegistry
from batch_capture.capture.splitter import split_units
from batch_capture.client.base import RemoteJobClient
from batch_capture.config import CaptureConfig
from batch_capture.enums import BatchEventType
from batch_capture.errors import ConfigurationError, PollingAbortedError
from batch_capture.models.domain import CaptureUnit, Job, Screenshot

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    """Outcome counts of one batch run."""

    units: int = 0
    jobs_started: int = 0
    jobs_completed: int = 0
    jobs_failed_to_start: int = 0
    jobs_failed: int = 0
    screenshots_completed: int = 0
    screenshots_failed: int = 0

    @property
    def has_failures(self) -> bool:
        return bool(self.jobs_failed_to_start or self.jobs_failed)

    def record(self, event: BatchEvent) -> None:
        counter = _SUMMARY_COUNTERS.get(event.event_type)
        if counter is not None:
            setattr(self, counter, getattr(self, counter) + 1)


_SUMMARY_COUNTERS: dict[BatchEventType, str] = {
    BatchEventType.JOB_STARTED: "jobs_started",
    BatchEventType.JOB_COMPLETED: "jobs_completed",
    BatchEventType.JOB_FAILED_TO_START: "jobs_failed_to_start",
    BatchEventType.JOB_FAILED: "jobs_failed",
    BatchEventType.SCREENSHOT_COMPLETED: "screenshots_completed",
    BatchEventType.SCREENSHOT_FAILED: "screenshots_failed",
}


class BatchCaptureOrchestrator:
    """Runs batches of capture units against the remote service.

    Observers subscribe to ``events``; ``jobs`` and ``completed_screenshots``
    reflect the progress of the current batch at any instant.
    """

    def __init__(
        self,
        client: RemoteJobClient,
        config: CaptureConfig,
        events: EventBus | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Remote client used to submit, poll and download.
            config: Batch settings (session limit, thumbnails, timings).
            events: Optional shared event bus; one is created otherwise.
        """
        self.client = client
        self.config = config
        self.events = events or EventBus()
        self._jobs = JobRegistry()
        self._completed = CompletedScreenshots()
        self._units = CaptureUnitIndex()
        self._running = False

    @property
    def jobs(self) -> list[Job]:
        return self._jobs.snapshot()

    @property
    def completed_screenshots(self) -> list[Screenshot]:
        return self._completed.snapshot()

    @property
    def is_running(self) -> bool:
        return self._running

    def unit_for(self, job_id: str) -> CaptureUnit | None:
        """The (split) unit a job was created from."""
        return self._units.get(job_id)

    def _validate(self, root_path: str | Path, units: list[CaptureUnit]) -> Path:
        if self._running:
            raise ConfigurationError("A batch is already running on this orchestrator")
        if root_path is None or not str(root_path).strip():
            raise ConfigurationError("The root path to save screenshots to is required")

        root = Path(root_path)
        if root.exists():
            raise ConfigurationError(
                f"The root path {root} must not exist, it will be created by the batch"
            )
        if not units:
            raise ConfigurationError("At least one capture unit must be defined")
        for index, unit in enumerate(units):
            if not unit.url:
                raise ConfigurationError(f"Capture unit #{index} has no URL")
            if not unit.browsers:
                raise ConfigurationError(f"Capture unit #{index} ({unit.url}) has no browsers")
        return root

    async def run_batch(
        self,
        root_path: str | Path,
        using_tunnel: bool,
        units: Iterable[CaptureUnit],
    ) -> BatchSummary:
        """Capture every unit and save the screenshots under ``root_path``.

        Args:
            root_path: Folder to create for this batch; must not exist yet.
            using_tunnel: Whether jobs run through an externally managed tunnel.
            units: Capture units; oversized ones are split automatically.

        Returns:
            Outcome counts. Per-unit failures are only reported via events.

        Raises:
            ConfigurationError: Invalid inputs; raised before any work starts.
        """
        unit_list = list(units)
        root = self._validate(root_path, unit_list)

        try:
            root.mkdir(parents=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot create root path {root}: {e}") from e

        self._running = True
        self._jobs.clear()
        self._completed.clear()
        self._units.clear()

        split = list(split_units(unit_list, self.config.max_browsers_per_job))
        summary = BatchSummary(units=len(split))
        unsubscribe = self.events.subscribe(summary.record)

        gate = AdmissionGate(
            self.config.session_limit,
            retry_delay=self.config.admission_retry_delay_seconds,
        )
        persister = ScreenshotPersister(
            self.client,
            root,
            units=self._units,
            completed=self._completed,
            events=self.events,
            capture_thumbnails=self.config.capture_thumbnails,
        )
        poller = JobPoller(
            self.client,
            self._jobs,
            persister,
            self.events,
            poll_interval=self.config.poll_interval_seconds,
            max_status_errors=self.config.max_status_errors,
        )

        logger.info(
            "Starting batch into %s: %d units (%d after splitting), session limit %d",
            root,
            len(unit_list),
            len(split),
            gate.limit,
        )
        try:
            await asyncio.gather(
                *(self._run_unit(unit, using_tunnel, gate, poller) for unit in split)
            )
        finally:
            unsubscribe()
            self._running = False

        logger.info(
            "Batch finished: %d jobs completed, %d failed, %d failed to start, "
            "%d screenshots (%d failed)",
            summary.jobs_completed,
            summary.jobs_failed,
            summary.jobs_failed_to_start,
            summary.screenshots_completed,
            summary.screenshots_failed,
        )
        return summary

    def run_batch_sync(
        self,
        root_path: str | Path,
        using_tunnel: bool,
        units: Iterable[CaptureUnit],
    ) -> BatchSummary:
        """Blocking variant of run_batch() for callers without an event loop."""
        return asyncio.run(self.run_batch(root_path, using_tunnel, units))

    async def _run_unit(
        self,
        unit: CaptureUnit,
        using_tunnel: bool,
        gate: AdmissionGate,
        poller: JobPoller,
    ) -> None:
        async with gate.slot():
            job = await self._start_job(unit, using_tunnel)
            if job is not None:
                await self._follow_job(job, poller)

    async def _start_job(self, unit: CaptureUnit, using_tunnel: bool) -> Job | None:
        try:
            job = await self.client.submit(unit.url, unit.job_config, using_tunnel, unit.browsers)
            self._units.register(job.id, unit)
        except Exception as e:
            logger.warning(
                "Job for %s in %d browsers failed to start: %s", unit.url, len(unit.browsers), e
            )
            await self.events.publish(
                JobFailedToStart(
                    url=unit.url,
                    job_config=unit.job_config,
                    browsers=unit.browsers,
                    error=e,
                )
            )
            return None

        logger.info("Started job %s for %s in %d browsers", job.id, unit.url, len(unit.browsers))
        return job

    async def _follow_job(self, job: Job, poller: JobPoller) -> None:
        try:
            self._jobs.add(job)
            await self.events.publish(JobStarted(job=job))
            completed = await poller.run(job.id)
            self._jobs.replace(completed)
            await self.events.publish(JobCompleted(job=completed))
        except PollingAbortedError as e:
            logger.error("Job %s failed: %s", job.id, e)
            await self._report_failed(job, e)
        except Exception as e:
            logger.exception("Job %s failed unexpectedly", job.id)
            await self._report_failed(job, e)

    async def _report_failed(self, job: Job, error: Exception) -> None:
        unit = self._units.get(job.id)
        await self.events.publish(
            JobFailed(
                job_id=job.id,
                url=unit.url if unit else "",
                job_config=unit.job_config if unit else job.config,
                browsers=unit.browsers if unit else (),
                error=error,
            )
        )
