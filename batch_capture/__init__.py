"""Batch screenshot capture against a remote rendering service."""

from batch_capture.capture import BatchCaptureOrchestrator, BatchSummary, EventBus
from batch_capture.client import RemoteJobClient, ScreenshotsApi
from batch_capture.config import CaptureConfig
from batch_capture.models import BrowserProfile, CaptureUnit, Job, JobConfig, Screenshot

__all__ = [
    "BatchCaptureOrchestrator",
    "BatchSummary",
    "BrowserProfile",
    "CaptureConfig",
    "CaptureUnit",
    "EventBus",
    "Job",
    "JobConfig",
    "RemoteJobClient",
    "Screenshot",
    "ScreenshotsApi",
]
