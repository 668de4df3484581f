"""StrEnum definitions for type-safe constants."""

from __future__ import annotations

import logging
from enum import StrEnum

logger = logging.getLogger(__name__)


def _normalize_state(raw: str) -> str:
    return raw.strip().lower().replace("-", "").replace("_", "").replace(" ", "")


class JobState(StrEnum):
    """Lifecycle states of a remote capture job.

    The remote vocabulary is not fully consistent, so anything that cannot be
    recognised maps to UNKNOWN, which is never terminal.
    """

    PENDING = "pending"
    QUEUED = "queue"
    PROCESSING = "processing"
    DONE = "done"
    TIMED_OUT = "timed-out"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.TIMED_OUT)

    @classmethod
    def parse(cls, raw: str | None) -> "JobState":
        """Map a remote state string onto a JobState.

        Missing values mean the job has not been picked up yet.
        """
        if not raw:
            return cls.PENDING
        key = _normalize_state(raw)
        state = _JOB_STATE_ALIASES.get(key)
        if state is None:
            logger.warning("Unrecognized job state from remote service: %r", raw)
            return cls.UNKNOWN
        return state


_JOB_STATE_ALIASES: dict[str, JobState] = {
    "pending": JobState.PENDING,
    "queue": JobState.QUEUED,
    "queued": JobState.QUEUED,
    "processing": JobState.PROCESSING,
    "done": JobState.DONE,
    "timedout": JobState.TIMED_OUT,
}


class ScreenshotState(StrEnum):
    """States of a single screenshot within a job."""

    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    TIMED_OUT = "timed-out"
    UNKNOWN = "unknown"

    @property
    def is_ready(self) -> bool:
        """Whether the screenshot can be handled (downloaded or marked failed)."""
        return self in (ScreenshotState.DONE, ScreenshotState.TIMED_OUT)

    @property
    def marker_name(self) -> str:
        """Name used in failure marker files, e.g. ``TimedOut``."""
        return "".join(part.capitalize() for part in self.value.split("-"))

    @classmethod
    def parse(cls, raw: str | None) -> "ScreenshotState":
        if not raw:
            return cls.PENDING
        key = _normalize_state(raw)
        state = _SCREENSHOT_STATE_ALIASES.get(key)
        if state is None:
            logger.warning("Unrecognized screenshot state from remote service: %r", raw)
            return cls.UNKNOWN
        return state


_SCREENSHOT_STATE_ALIASES: dict[str, ScreenshotState] = {
    "pending": ScreenshotState.PENDING,
    # Screenshots are occasionally reported as queued before processing.
    "queue": ScreenshotState.PENDING,
    "queued": ScreenshotState.PENDING,
    "processing": ScreenshotState.PROCESSING,
    "done": ScreenshotState.DONE,
    "timedout": ScreenshotState.TIMED_OUT,
}


class Orientation(StrEnum):
    """Orientations of a mobile device."""

    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class Quality(StrEnum):
    """Screenshot qualities."""

    ORIGINAL = "original"
    COMPRESSED = "compressed"


class OsxResolution(StrEnum):
    """Screen resolutions available on OS X browsers."""

    R_1024X768 = "1024x768"
    R_1280X960 = "1280x960"
    R_1280X1024 = "1280x1024"
    R_1600X1200 = "1600x1200"
    R_1920X1080 = "1920x1080"


class WinResolution(StrEnum):
    """Screen resolutions available on Windows browsers."""

    R_1024X768 = "1024x768"
    R_1280X1024 = "1280x1024"


class BatchEventType(StrEnum):
    """Lifecycle event types raised during a batch."""

    JOB_STARTED = "job_started"
    JOB_STATE_CHANGED = "job_state_changed"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED_TO_START = "job_failed_to_start"
    JOB_FAILED = "job_failed"
    SCREENSHOT_COMPLETED = "screenshot_completed"
    SCREENSHOT_FAILED = "screenshot_failed"
