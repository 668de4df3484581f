"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from batch_capture.config import CaptureConfig
from batch_capture.enums import JobState, ScreenshotState
from batch_capture.errors import SubmissionError, TransportError
from batch_capture.models.domain import BrowserProfile, Job, JobConfig, Screenshot

# Configure pytest-asyncio to auto-detect async tests
pytest_plugins = ("pytest_asyncio",)


def _default_script(url: str, job: Job) -> list[Job | Exception]:
    return [
        job.model_copy(update={"state": JobState.PROCESSING}),
        FakeJobClient.finished(job),
    ]


class FakeJobClient:
    """In-memory RemoteJobClient with scripted status responses.

    Each submitted job gets a script (a list of Job values or exceptions)
    built by ``script_factory``; fetch_status() walks the script and keeps
    returning its last entry once exhausted.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.submitted: list[tuple[str, tuple[BrowserProfile, ...], bool]] = []
        self.fail_submit_for: set[str] = set()
        self.script_factory: Callable[[str, Job], list[Job | Exception]] = _default_script
        self.scripts: dict[str, list[Job | Exception]] = {}
        self.download_calls: list[str] = []
        self.download_errors: set[str] = set()
        self.active = 0
        self.max_active = 0
        self._counter = 0
        self._finished: set[str] = set()

    @staticmethod
    def image_url_for(screenshot_id: str) -> str:
        return f"https://images.example.com/{screenshot_id}.png"

    @classmethod
    def finished(
        cls,
        job: Job,
        state: ScreenshotState = ScreenshotState.DONE,
        job_state: JobState = JobState.DONE,
    ) -> Job:
        """A copy of ``job`` in a terminal state with every screenshot in ``state``."""
        screenshots = tuple(
            s.model_copy(
                update={
                    "state": state,
                    "image_url": cls.image_url_for(s.id) if state == ScreenshotState.DONE else None,
                }
            )
            for s in job.screenshots
        )
        return job.model_copy(update={"state": job_state, "screenshots": screenshots})

    async def submit(
        self,
        url: str,
        job_config: JobConfig,
        using_tunnel: bool,
        browsers: Sequence[BrowserProfile],
    ) -> Job:
        self.calls.append(("submit", url))
        if url in self.fail_submit_for:
            raise SubmissionError("Error while starting the job", status_code=422, reason="Unprocessable")

        self._counter += 1
        job_id = f"job-{self._counter}"
        job = Job(
            id=job_id,
            config=job_config,
            state=JobState.QUEUED,
            screenshots=tuple(
                Screenshot(id=f"{job_id}-s{i}", browser=b) for i, b in enumerate(browsers)
            ),
        )
        self.submitted.append((url, tuple(browsers), using_tunnel))
        self.scripts[job_id] = list(self.script_factory(url, job))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        return job

    async def fetch_status(self, job_id: str) -> Job:
        self.calls.append(("status", job_id))
        script = self.scripts[job_id]
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, Exception):
            raise item
        if item.is_complete and job_id not in self._finished:
            self._finished.add(job_id)
            self.active -= 1
        return item

    async def download(self, source_url: str) -> bytes:
        self.download_calls.append(source_url)
        if source_url in self.download_errors:
            raise TransportError(f"GET {source_url} returned 500 Internal Server Error")
        return b"\x89PNG fake image"


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
def fake_client() -> FakeJobClient:
    return FakeJobClient()


@pytest.fixture
def make_browsers() -> Callable[[int], tuple[BrowserProfile, ...]]:
    """Factory of distinct desktop browsers."""

    def _make(count: int) -> tuple[BrowserProfile, ...]:
        return tuple(
            BrowserProfile(
                os="Windows",
                os_version="10",
                browser_name="chrome",
                browser_version=f"{40 + i}.0",
            )
            for i in range(count)
        )

    return _make


@pytest.fixture
def fast_config(monkeypatch) -> CaptureConfig:
    """Config with timings short enough for unit tests."""
    for name in ("CAPTURE_USERNAME", "CAPTURE_PASSWORD", "CAPTURE_SESSION_LIMIT"):
        monkeypatch.delenv(name, raising=False)
    return CaptureConfig(
        session_limit=2,
        poll_interval_seconds=0,
        admission_retry_delay_seconds=0.01,
        max_status_errors=3,
    )
