"""Loading batch descriptions from YAML or JSON files.

Example (YAML):

    units:
      - url: https://example.com/
        filename: home
        job:
          win_resolution: 1280x1024
          osx_resolution: 1920x1080
          orientation: portrait
          wait_time: 10
        browsers:
          - {os: Windows, os_version: "10", browser_name: chrome, browser_version: "49.0"}
          - {os: ios, os_version: "9.1", device: iPhone 6S}
"""

from __future__ import annotations

import json
from pathlib import Path

import yaml
from pydantic import Field, ValidationError

from batch_capture.errors import ConfigurationError
from batch_capture.models.base import JsonModel
from batch_capture.models.domain import BrowserProfile, CaptureUnit, JobConfig


class BatchUnitSpec(JsonModel):
    url: str = Field(min_length=1)
    filename: str | None = None
    job: JobConfig = Field(default_factory=JobConfig)
    browsers: list[BrowserProfile] = Field(min_length=1)

    def to_unit(self) -> CaptureUnit:
        return CaptureUnit(
            url=self.url,
            filename=self.filename,
            job_config=self.job,
            browsers=tuple(self.browsers),
        )


class BatchFile(JsonModel):
    units: list[BatchUnitSpec] = Field(min_length=1)

    def to_units(self) -> list[CaptureUnit]:
        return [spec.to_unit() for spec in self.units]


def load_batch_file(path: str | Path) -> list[CaptureUnit]:
    """Parse a batch file into capture units.

    The format is chosen by suffix: ``.json`` is JSON, anything else YAML.

    Raises:
        ConfigurationError: The file is missing, unreadable or invalid.
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read batch file {p}: {e}") from e

    try:
        data = json.loads(text) if p.suffix.lower() == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Batch file {p} is not valid: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Batch file {p} must contain a mapping with a 'units' list")

    try:
        return BatchFile.model_validate(data).to_units()
    except ValidationError as e:
        raise ConfigurationError(f"Batch file {p} is not valid: {e}") from e
