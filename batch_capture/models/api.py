"""Wire models for the remote screenshots API and their domain mapping.

The remote JSON uses snake_case keys and loosely typed values; these models
absorb that looseness so the rest of the package only sees domain models.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from batch_capture.enums import (
    JobState,
    Orientation,
    OsxResolution,
    Quality,
    ScreenshotState,
    WinResolution,
)
from batch_capture.models.domain import BrowserProfile, Job, JobConfig, Screenshot

logger = logging.getLogger(__name__)

RESOLUTION_PREFIX = "r_"


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


class BrowserInfo(WireModel):
    os: str | None = None
    os_version: str | None = None
    browser: str | None = None
    browser_version: str | None = None
    device: str | None = None


class ScreenshotInfo(BrowserInfo):
    id: str
    state: str | None = None
    url: str | None = None
    image_url: str | None = None
    thumb_url: str | None = None
    created_at: str | None = None


class ScreenshotJobResponse(WireModel):
    id: str | None = None
    job_id: str | None = None
    state: str | None = None
    callback_url: str | None = None
    win_res: str | None = None
    mac_res: str | None = None
    orientation: str | None = None
    quality: str | None = None
    wait_time: int | None = None
    screenshots: list[ScreenshotInfo] = Field(
        default_factory=list,
        validation_alias=AliasChoices("screenshots", "Screenshots"),
    )


def strip_resolution_prefix(raw: str) -> str:
    """Remove the vendor ``r_`` prefix some resolution values carry."""
    value = raw.strip()
    if value.lower().startswith(RESOLUTION_PREFIX):
        value = value[len(RESOLUTION_PREFIX):]
    return value.lower()


def _parse_optional_enum(enum_cls: Any, raw: str | None, *, field: str) -> Any:
    if not raw:
        return None
    value = raw.strip().lower()
    if field.endswith("_res"):
        value = strip_resolution_prefix(value)
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning("Ignoring unrecognized %s value from remote service: %r", field, raw)
        return None


def parse_created_at(raw: str | None) -> datetime | None:
    """Parse the service's ``YYYY-MM-DD HH:MM:SS UTC`` timestamps."""
    if not raw:
        return None
    text = raw.strip()
    if text.endswith(" UTC"):
        text = text[: -len(" UTC")]
        try:
            return datetime.strptime(text, "%Y-%m-%d %H:%M:%S").replace(tzinfo=UTC)
        except ValueError:
            pass
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Could not parse screenshot timestamp: %r", raw)
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def browser_from_info(info: BrowserInfo) -> BrowserProfile:
    return BrowserProfile(
        os=info.os or "",
        os_version=info.os_version or "",
        browser_name=info.browser,
        browser_version=info.browser_version,
        device=info.device,
    )


def browser_to_info(browser: BrowserProfile) -> dict[str, Any]:
    return {
        "os": browser.os,
        "os_version": browser.os_version,
        "browser": browser.browser_name,
        "browser_version": browser.browser_version,
        "device": browser.device,
    }


def job_config_from_response(response: ScreenshotJobResponse) -> JobConfig:
    return JobConfig(
        callback_url=response.callback_url,
        win_resolution=_parse_optional_enum(WinResolution, response.win_res, field="win_res"),
        osx_resolution=_parse_optional_enum(OsxResolution, response.mac_res, field="mac_res"),
        orientation=_parse_optional_enum(Orientation, response.orientation, field="orientation"),
        quality=_parse_optional_enum(Quality, response.quality, field="quality"),
        wait_time=response.wait_time if response.wait_time is not None else 5,
    )


def screenshot_from_info(info: ScreenshotInfo) -> Screenshot:
    return Screenshot(
        id=info.id,
        browser=browser_from_info(info),
        state=ScreenshotState.parse(info.state),
        url=info.url,
        image_url=info.image_url,
        thumbnail_url=info.thumb_url,
        created_at=parse_created_at(info.created_at),
    )


def job_from_response(response: ScreenshotJobResponse) -> Job:
    """Map a job payload onto the domain Job.

    Creation responses carry ``job_id`` while status responses carry ``id``.
    """
    job_id = response.job_id or response.id
    if not job_id:
        raise ValueError("Job payload carries neither 'job_id' nor 'id'")

    return Job(
        id=job_id,
        config=job_config_from_response(response),
        state=JobState.parse(response.state),
        screenshots=tuple(screenshot_from_info(s) for s in response.screenshots),
    )


def build_job_request(
    url: str,
    job_config: JobConfig,
    using_tunnel: bool,
    browsers: tuple[BrowserProfile, ...] | list[BrowserProfile],
) -> dict[str, Any]:
    """Build the JSON body of a job creation call."""
    return {
        "url": url,
        "callback_url": job_config.callback_url,
        "win_res": job_config.win_resolution.value if job_config.win_resolution else None,
        "mac_res": job_config.osx_resolution.value if job_config.osx_resolution else None,
        "orientation": job_config.orientation.value if job_config.orientation else None,
        "quality": job_config.quality.value if job_config.quality else None,
        "wait_time": job_config.wait_time,
        "tunnel": using_tunnel,
        "browsers": [browser_to_info(b) for b in browsers],
    }
