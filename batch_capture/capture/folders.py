"""Local folder layout for saved screenshots.

Desktop browsers:  {os}/{os_version}/{browser}/{browser_version}/{resolution}
Mobile devices:    {os}/{os_version}/{device}/{orientation}

Segments whose value is not configured (no resolution or orientation) are
left out rather than rendered as empty names.
"""

from __future__ import annotations

from pathlib import Path, PurePath

from batch_capture.models.api import strip_resolution_prefix
from batch_capture.models.domain import BrowserProfile, JobConfig

OSX_MARKER = "os x"


def _is_osx(os_name: str) -> bool:
    return OSX_MARKER in os_name.lower()


def resolution_for(job_config: JobConfig, browser: BrowserProfile) -> str | None:
    """Resolution folder name for a desktop browser, without vendor prefix."""
    resolution = job_config.osx_resolution if _is_osx(browser.os) else job_config.win_resolution
    if resolution is None:
        return None
    return strip_resolution_prefix(resolution.value)


def relative_folder(job_config: JobConfig, browser: BrowserProfile) -> PurePath:
    """Folder of a screenshot relative to the batch root. Pure."""
    if browser.is_device:
        parts = [
            browser.os,
            browser.os_version,
            browser.device,
            job_config.orientation.value if job_config.orientation else None,
        ]
    else:
        parts = [
            browser.os,
            browser.os_version,
            browser.browser_name,
            browser.browser_version,
            resolution_for(job_config, browser),
        ]
    return PurePath(*(str(p) for p in parts if p))


def ensure_screenshot_directory(root: Path, job_config: JobConfig, browser: BrowserProfile) -> Path:
    """Create (idempotently) and return the folder for a screenshot."""
    directory = Path(root) / relative_folder(job_config, browser)
    directory.mkdir(parents=True, exist_ok=True)
    return directory
