"""Pydantic domain models.

These models are produced by the API client and the batch file loader and
used throughout the capture engine. All of them are immutable: a job's
progress is tracked by replacing the whole Job value on every status fetch.
"""

from datetime import datetime

from pydantic import Field

from batch_capture.enums import (
    JobState,
    Orientation,
    OsxResolution,
    Quality,
    ScreenshotState,
    WinResolution,
)
from batch_capture.models.base import FrozenJsonModel


class BrowserProfile(FrozenJsonModel):
    """A browser (or device) the remote service can render a page in.

    Identity is the tuple of all fields.
    """

    os: str
    os_version: str
    browser_name: str | None = None
    browser_version: str | None = None
    device: str | None = None

    @property
    def is_device(self) -> bool:
        return bool(self.device)

    def __str__(self) -> str:
        if self.is_device:
            return f"{self.os} v{self.os_version} on {self.device} running {self.browser_name}"
        return f"{self.browser_name} v{self.browser_version} on {self.os} {self.os_version}"


class JobConfig(FrozenJsonModel):
    """Rendering options sent with every job and echoed back by the service."""

    callback_url: str | None = None
    win_resolution: WinResolution | None = None
    osx_resolution: OsxResolution | None = None
    orientation: Orientation | None = None
    quality: Quality | None = None
    wait_time: int = Field(default=5, ge=0)


class Screenshot(FrozenJsonModel):
    """One rendered image (plus optional thumbnail) for one browser."""

    id: str
    browser: BrowserProfile
    state: ScreenshotState = ScreenshotState.PENDING
    url: str | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None
    created_at: datetime | None = None

    @property
    def is_ready(self) -> bool:
        return self.state.is_ready


class Job(FrozenJsonModel):
    """The remote service's handle for one submitted capture unit."""

    id: str
    config: JobConfig = Field(default_factory=JobConfig)
    state: JobState = JobState.PENDING
    screenshots: tuple[Screenshot, ...] = ()

    @property
    def key(self) -> str:
        """Case-insensitive identity used by registries and lookups."""
        return self.id.lower()

    @property
    def is_complete(self) -> bool:
        return self.state.is_terminal


class CaptureUnit(FrozenJsonModel):
    """One API-call-sized request: a URL rendered in a set of browsers.

    ``filename`` is the base name for every saved image of the unit; images
    of different browsers land in different folders so the name is shared.
    """

    url: str = Field(min_length=1)
    job_config: JobConfig = Field(default_factory=JobConfig)
    browsers: tuple[BrowserProfile, ...] = Field(min_length=1)
    filename: str | None = None
