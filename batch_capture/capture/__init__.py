"""Batch capture engine.

Splits capture units into API-sized jobs, admits them under the session
limit, follows each job while saving its screenshots as they finish, and
reports every lifecycle transition through the event bus.
"""

from batch_capture.capture.admission import AdmissionGate
from batch_capture.capture.events import (
    BatchEvent,
    EventBus,
    JobCompleted,
    JobFailed,
    JobFailedToStart,
    JobStarted,
    JobStateChanged,
    ScreenshotCompleted,
    ScreenshotFailed,
)
from batch_capture.capture.folders import ensure_screenshot_directory, relative_folder
from batch_capture.capture.orchestrator import BatchCaptureOrchestrator, BatchSummary
from batch_capture.capture.persistence import ScreenshotPersister
from batch_capture.capture.poller import JobPoller
from batch_capture.capture.progress import CaptureUnitIndex, CompletedScreenshots, JobRegistry
from batch_capture.capture.splitter import split_unit, split_units

__all__ = [
    "AdmissionGate",
    "BatchCaptureOrchestrator",
    "BatchEvent",
    "BatchSummary",
    "CaptureUnitIndex",
    "CompletedScreenshots",
    "EventBus",
    "JobCompleted",
    "JobFailed",
    "JobFailedToStart",
    "JobPoller",
    "JobRegistry",
    "JobStarted",
    "JobStateChanged",
    "ScreenshotCompleted",
    "ScreenshotFailed",
    "ScreenshotPersister",
    "ensure_screenshot_directory",
    "relative_folder",
    "split_unit",
    "split_units",
]
