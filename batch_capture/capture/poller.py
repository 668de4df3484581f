"""Following a submitted job until it reaches a terminal state.

Screenshots are saved while the job is still running: each poll hands newly
finished screenshots to background save tasks, and the poll loop keeps its
own pace regardless of how long the downloads take. The poller returns only
after every save it started has finished.
"""

from __future__ import annotations

import asyncio
import logging

from batch_capture.capture.events import EventBus, JobStateChanged
from batch_capture.capture.persistence import ScreenshotPersister
from batch_capture.capture.progress import JobRegistry
from batch_capture.client.base import RemoteJobClient
from batch_capture.errors import PollingAbortedError, TransportError
from batch_capture.models.domain import Job, Screenshot

logger = logging.getLogger(__name__)


class JobPoller:
    """Drives the status-poll loop of one admitted job."""

    DEFAULT_POLL_INTERVAL_SECONDS = 4.0
    DEFAULT_MAX_STATUS_ERRORS = 10

    def __init__(
        self,
        client: RemoteJobClient,
        jobs: JobRegistry,
        persister: ScreenshotPersister,
        events: EventBus,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_status_errors: int = DEFAULT_MAX_STATUS_ERRORS,
    ) -> None:
        """Initialize the poller.

        Args:
            client: Remote client used for status fetches.
            jobs: Registry holding the current Job; the poller replaces the
                entry on every successful fetch.
            persister: Saves ready screenshots.
            events: Bus for JobStateChanged.
            poll_interval: Seconds between status fetches.
            max_status_errors: Consecutive fetch failures tolerated before
                the job is abandoned.
        """
        self.client = client
        self.jobs = jobs
        self.persister = persister
        self.events = events
        self.poll_interval = poll_interval
        self.max_status_errors = max_status_errors

    async def run(self, job_id: str) -> Job:
        """Poll ``job_id`` until it is complete.

        Returns:
            The final Job snapshot.

        Raises:
            PollingAbortedError: Status could not be fetched
                ``max_status_errors`` times in a row.
        """
        handled: set[str] = set()
        save_tasks: list[asyncio.Task[None]] = []
        consecutive_errors = 0
        job: Job | None = None

        try:
            while True:
                try:
                    job = await self.client.fetch_status(job_id)
                except TransportError as e:
                    consecutive_errors += 1
                    logger.warning(
                        "Status fetch for job %s failed (%d/%d): %s",
                        job_id,
                        consecutive_errors,
                        self.max_status_errors,
                        e,
                    )
                    if consecutive_errors >= self.max_status_errors:
                        raise PollingAbortedError(job_id, consecutive_errors) from e
                else:
                    consecutive_errors = 0
                    await self._observe(job)

                    for screenshot in self._newly_ready(job, handled):
                        # Marked before the save starts: at most once per screenshot.
                        handled.add(screenshot.id)
                        save_tasks.append(
                            asyncio.create_task(
                                self.persister.persist(job, screenshot),
                                name=f"save-{job.id}-{screenshot.id}",
                            )
                        )

                    if job.is_complete:
                        logger.info(
                            "Job %s finished as %s with %d screenshots",
                            job.id,
                            job.state,
                            len(job.screenshots),
                        )
                        break

                await asyncio.sleep(self.poll_interval)
        finally:
            if save_tasks:
                await self._join(job_id, save_tasks)

        return job

    async def _observe(self, job: Job) -> None:
        """Publish a state change, then make ``job`` the current value."""
        current = self.jobs.get(job.id)
        previous_state = current.state if current is not None else None
        if previous_state != job.state:
            logger.info("Job %s: %s -> %s", job.id, previous_state, job.state)
            await self.events.publish(JobStateChanged(job=job, previous_state=previous_state))

        if current is None:
            self.jobs.add(job)
        else:
            self.jobs.replace(job)

    @staticmethod
    def _newly_ready(job: Job, handled: set[str]) -> list[Screenshot]:
        return [s for s in job.screenshots if s.id not in handled and s.is_ready]

    @staticmethod
    async def _join(job_id: str, save_tasks: list[asyncio.Task[None]]) -> None:
        results = await asyncio.gather(*save_tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                logger.error("Screenshot save task of job %s failed: %r", job_id, result)
