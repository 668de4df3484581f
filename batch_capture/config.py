"""Configuration with JSON file, secrets.yml, and env variable support.

A single CaptureConfig is built at process start and handed to the API client
and the orchestrator; nothing reads configuration lazily from global state.
"""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from batch_capture.errors import ConfigurationError

ENV_PREFIX = "CAPTURE_"

# Sections of secrets.yml whose keys map straight onto config fields instead of
# being flattened to "<section>_<key>".
_DIRECT_SECTIONS = frozenset({"authentication", "batch"})


def _find_repo_root(*, start: Path) -> Path:
    """Best-effort repository root discovery.

    Relative log paths are resolved against the first directory containing
    `pyproject.toml`, falling back to the current working directory.
    """

    try:
        start = start.resolve()
        for p in [start, *start.parents]:
            if (p / "pyproject.toml").exists():
                return p
    except OSError:
        pass

    return Path.cwd()


def _normalize_key(key: Any) -> str:
    return str(key).strip().replace("-", "_").lower()


def _flatten_secrets_mapping(secrets: dict) -> dict:
    """Flatten secrets mapping into CaptureConfig-compatible keys.

    Converts nested YAML structure to flat config keys:
        authentication.username -> username
        batch.session-limit -> session_limit
        error_log.path -> error_log_path
    """
    flat = {}
    for section, values in secrets.items():
        section_key = _normalize_key(section)
        if isinstance(values, dict):
            for key, value in values.items():
                if section_key in _DIRECT_SECTIONS:
                    flat[_normalize_key(key)] = value
                else:
                    flat[f"{section_key}_{_normalize_key(key)}"] = value
        else:
            flat[section_key] = values

    return flat


def _load_secrets(secrets_path: Path) -> dict:
    """Load and flatten secrets from YAML file."""
    if not secrets_path.exists():
        return {}

    try:
        with open(secrets_path, encoding="utf-8") as f:
            secrets = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse secrets file {secrets_path}: {e}") from e

    if not isinstance(secrets, dict):
        return {}

    return _flatten_secrets_mapping(secrets)


class CaptureConfig(BaseSettings):
    """Configuration with JSON file + secrets.yml + env var support.

    Load order (later overrides earlier):
    1. config.json - base configuration
    2. secrets.yml - credentials and batch settings
    3. Environment variables - runtime overrides

    Prefix: CAPTURE_ (e.g., CAPTURE_SESSION_LIMIT)
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Authentication
    username: str | None = Field(default=None)
    password: str | None = Field(default=None)
    authenticate_for_get_browsers: bool = Field(default=False)
    authenticate_for_get_job_info: bool = Field(default=True)
    authenticate_for_get_screenshot_images: bool = Field(
        default=False,
        description=(
            "BrowserStack rejects image downloads that carry credentials, "
            "so this stays off unless a proxy in front of it requires them."
        ),
    )
    authenticate_for_start_job: bool = Field(default=True)

    # Remote service
    api_base_url: str = Field(default="https://www.browserstack.com/screenshots/")
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    max_browsers_per_job: int = Field(
        default=25,
        ge=1,
        description="Maximum number of browsers the service accepts in one job.",
    )

    # Batch settings
    session_limit: int = Field(
        default=4,
        ge=1,
        description="Maximum number of jobs running on the remote service at once.",
    )
    capture_thumbnails: bool = Field(default=False)
    poll_interval_seconds: float = Field(default=4.0, ge=0)
    admission_retry_delay_seconds: float = Field(default=1.0, gt=0)
    max_status_errors: int = Field(
        default=10,
        ge=1,
        description="Consecutive status fetch failures tolerated before a job is abandoned.",
    )

    # Logging
    log_level: str = Field(default="INFO")
    error_log_file_enabled: bool = Field(default=False)
    error_log_file_path: str = Field(default="./logs/errors.log")
    error_log_level: str = Field(default="WARNING")
    error_log_max_bytes: int = Field(default=10_485_760, ge=0)
    error_log_backup_count: int = Field(default=5, ge=0)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)

    @classmethod
    def from_json_file(
        cls,
        config_path: str = "config.json",
        secrets_path: str = "secrets.yml",
    ) -> "CaptureConfig":
        """Load config from JSON + secrets.yml with env var overrides.

        Args:
            config_path: Path to JSON config file.
            secrets_path: Path to secrets YAML file.

        Returns:
            Configured CaptureConfig instance.

        Raises:
            ConfigurationError: If either file is not valid JSON or YAML.
        """
        config_data: dict[str, Any] = {}

        # Load base config from JSON
        json_path = Path(config_path)
        if json_path.exists():
            try:
                with open(json_path, encoding="utf-8") as f:
                    loaded = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Cannot parse config file {json_path}: {e}") from e
            if isinstance(loaded, dict):
                config_data = {_normalize_key(k): v for k, v in loaded.items()}

        # Merge secrets (overrides JSON values)
        config_data.update(_load_secrets(Path(secrets_path)))

        # Drop keys whose env var is set so that env overrides file values
        for key in [k for k in config_data if f"{ENV_PREFIX}{k.upper()}" in os.environ]:
            del config_data[key]

        return cls(**config_data)


def resolve_log_path(raw: str) -> Path:
    """Resolve a configured log path, relative paths against the repo root."""
    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = _find_repo_root(start=Path(__file__)) / p
    return p.resolve()
