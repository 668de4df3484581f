"""Remote screenshots service client."""

from batch_capture.client.base import RemoteJobClient
from batch_capture.client.screenshots_api import ScreenshotsApi

__all__ = ["RemoteJobClient", "ScreenshotsApi"]
