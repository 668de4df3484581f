"""Domain and wire models."""

from batch_capture.models.base import FrozenJsonModel, JsonModel
from batch_capture.models.domain import (
    BrowserProfile,
    CaptureUnit,
    Job,
    JobConfig,
    Screenshot,
)

__all__ = [
    "BrowserProfile",
    "CaptureUnit",
    "FrozenJsonModel",
    "Job",
    "JobConfig",
    "JsonModel",
    "Screenshot",
]
