"""Saving finished screenshots to local storage.

Every screenshot is handled independently: a failed download is reported
and recorded, and never affects sibling screenshots or the owning job.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from batch_capture.capture.events import EventBus, ScreenshotCompleted, ScreenshotFailed
from batch_capture.capture.folders import ensure_screenshot_directory
from batch_capture.capture.progress import CaptureUnitIndex, CompletedScreenshots
from batch_capture.client.base import RemoteJobClient
from batch_capture.enums import ScreenshotState
from batch_capture.errors import PersistenceError, TransportError
from batch_capture.models.domain import Job, JobConfig, Screenshot

logger = logging.getLogger(__name__)

_FOLDER_FIELDS = ("win_resolution", "osx_resolution", "orientation")


def image_extension(source_url: str, default: str) -> str:
    suffix = PurePosixPath(urlsplit(source_url).path).suffix
    return suffix or default


def marker_file_name(base_name: str, state: ScreenshotState) -> str:
    """Name of the empty file recording a screenshot that was not produced."""
    return f"{base_name}_{state.marker_name}.txt"


class ScreenshotPersister:
    """Downloads screenshots of a batch into the batch root folder."""

    DEFAULT_EXTENSION = ".png"
    THUMBNAIL_SUFFIX = "_thumbnail"
    PARTIAL_SUFFIX = ".part"

    def __init__(
        self,
        client: RemoteJobClient,
        root: Path,
        *,
        units: CaptureUnitIndex,
        completed: CompletedScreenshots,
        events: EventBus,
        capture_thumbnails: bool = False,
    ) -> None:
        """Initialize the persister.

        Args:
            client: Remote client used for downloads.
            root: Batch root folder; must already exist.
            units: Job id to unit lookup, used to find the filename.
            completed: Collection every handled screenshot is appended to.
            events: Bus for ScreenshotCompleted / ScreenshotFailed.
            capture_thumbnails: Also save the thumbnail of each screenshot.
        """
        self.client = client
        self.root = Path(root)
        self.capture_thumbnails = capture_thumbnails
        self._units = units
        self._completed = completed
        self._events = events

    def base_name_for(self, job: Job, screenshot: Screenshot) -> str:
        unit = self._units.get(job.id)
        if unit is not None and unit.filename:
            return unit.filename
        return screenshot.id

    def folder_config_for(self, job: Job) -> JobConfig:
        """Job config used to name folders.

        The service does not always echo every rendering option back; options
        missing from ``job.config`` are taken from the submitted unit.
        """
        unit = self._units.get(job.id)
        if unit is None:
            return job.config
        missing = {
            name: getattr(unit.job_config, name)
            for name in _FOLDER_FIELDS
            if getattr(job.config, name) is None and getattr(unit.job_config, name) is not None
        }
        if not missing:
            return job.config
        return job.config.model_copy(update=missing)

    async def persist(self, job: Job, screenshot: Screenshot) -> None:
        """Handle one ready screenshot and report the outcome.

        Never raises; failures are published as ScreenshotFailed. A thumbnail
        that cannot be saved is reported on its own and does not discard the
        saved image.
        """
        base_name = self.base_name_for(job, screenshot)
        image_path: Path | None = None
        thumbnail_path: Path | None = None

        try:
            directory = await asyncio.to_thread(
                self._ensure_directory, job, screenshot
            )
            if screenshot.state == ScreenshotState.DONE:
                image_path, thumbnail_path = await self._save_images(
                    job, screenshot, directory, base_name
                )
            elif screenshot.state == ScreenshotState.TIMED_OUT:
                await asyncio.to_thread(
                    self._write_marker, directory, marker_file_name(base_name, screenshot.state)
                )
                logger.info(
                    "Screenshot %s of job %s timed out in %s",
                    screenshot.id,
                    job.id,
                    screenshot.browser,
                )
        except Exception as e:
            await self._report_failure(job, screenshot, e, base_name)

        self._completed.append(screenshot)
        await self._events.publish(
            ScreenshotCompleted(
                job_id=job.id,
                screenshot=screenshot,
                image_path=image_path,
                thumbnail_path=thumbnail_path,
            )
        )

    async def _report_failure(
        self, job: Job, screenshot: Screenshot, error: Exception, image_name: str
    ) -> None:
        if isinstance(error, (TransportError, PersistenceError)):
            logger.warning(
                "Could not save %s of screenshot %s of job %s (%s): %s",
                image_name,
                screenshot.id,
                job.id,
                screenshot.browser,
                error,
            )
        else:
            logger.error(
                "Unexpected error saving %s of screenshot %s of job %s",
                image_name,
                screenshot.id,
                job.id,
                exc_info=error,
            )
        await self._events.publish(
            ScreenshotFailed(job_id=job.id, screenshot=screenshot, error=error, image_name=image_name)
        )

    def _ensure_directory(self, job: Job, screenshot: Screenshot) -> Path:
        try:
            return ensure_screenshot_directory(self.root, self.folder_config_for(job), screenshot.browser)
        except OSError as e:
            raise PersistenceError(f"Cannot create folder for screenshot {screenshot.id}: {e}") from e

    async def _save_images(
        self, job: Job, screenshot: Screenshot, directory: Path, base_name: str
    ) -> tuple[Path, Path | None]:
        """Save the image and, if enabled, its thumbnail.

        Raises the image's error. A thumbnail error is reported here and
        yields no thumbnail path.
        """
        thumbnail_name = f"{base_name}{self.THUMBNAIL_SUFFIX}"
        saves = [self.save(screenshot.image_url, directory, base_name)]
        if self.capture_thumbnails:
            saves.append(self.save(screenshot.thumbnail_url, directory, thumbnail_name))

        # Both downloads finish before any failure is reported.
        results = await asyncio.gather(*saves, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        thumbnail_path = None
        if len(results) > 1:
            if isinstance(results[1], Exception):
                await self._report_failure(job, screenshot, results[1], thumbnail_name)
            else:
                thumbnail_path = results[1]

        if isinstance(results[0], Exception):
            raise results[0]
        return results[0], thumbnail_path

    async def save(self, source_url: str | None, directory: Path, name: str) -> Path:
        """Download ``source_url`` into ``directory/name<ext>`` unless it exists.

        Returns:
            The destination path, whether it was downloaded now or before.
        """
        if not source_url:
            raise PersistenceError(f"No source URL to save {name} from")

        destination = directory / f"{name}{image_extension(source_url, self.DEFAULT_EXTENSION)}"
        if destination.exists():
            logger.debug("Skipping %s, already saved", destination)
            return destination

        data = await self.client.download(source_url)
        await asyncio.to_thread(self._write_file, destination, data)
        logger.debug("Saved %s (%d bytes)", destination, len(data))
        return destination

    def _write_file(self, destination: Path, data: bytes) -> None:
        # A partial file must never exist under the final name.
        partial = destination.with_name(destination.name + self.PARTIAL_SUFFIX)
        try:
            partial.write_bytes(data)
            os.replace(partial, destination)
        except OSError as e:
            partial.unlink(missing_ok=True)
            raise PersistenceError(f"Cannot write {destination}: {e}") from e

    @staticmethod
    def _write_marker(directory: Path, name: str) -> None:
        try:
            (directory / name).touch(exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot write marker {directory / name}: {e}") from e
