"""Error log file handler for capturing failed jobs and screenshots to a file.

Long batches are usually left unattended; the rotating error log keeps the
warnings and errors of every run in one place for later inspection.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

from batch_capture.config import resolve_log_path

if TYPE_CHECKING:
    from batch_capture.config import CaptureConfig


_error_file_handler: RotatingFileHandler | None = None


def setup_error_log_file(config: "CaptureConfig") -> RotatingFileHandler | None:
    """Setup error log file handler based on configuration.

    Args:
        config: Capture configuration with error log settings.

    Returns:
        The configured RotatingFileHandler, or None if disabled.
    """
    global _error_file_handler

    if not config.error_log_file_enabled:
        return None

    if _error_file_handler is not None:
        return _error_file_handler

    log_level = getattr(logging, config.error_log_level.upper(), logging.WARNING)
    log_file = resolve_log_path(config.error_log_file_path)

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Warning: Cannot create error log directory {log_file.parent}: {e}", file=sys.stderr)
        return None

    try:
        handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=config.error_log_max_bytes,
            backupCount=config.error_log_backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        print(f"Warning: Cannot create error log file {log_file}: {e}", file=sys.stderr)
        return None

    handler.setLevel(log_level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    # Imported here: logging_filters depends on this package for redaction.
    from batch_capture.logging_filters import install_redaction_filter

    install_redaction_filter(handler)

    logging.getLogger().addHandler(handler)
    _error_file_handler = handler

    logging.getLogger(__name__).info(
        "Error log file handler initialized: %s (level=%s)", log_file, config.error_log_level
    )
    return handler


def get_error_log_handler() -> RotatingFileHandler | None:
    """Get the current error log file handler."""
    return _error_file_handler


def close_error_log_file() -> None:
    """Detach and close the error log handler, if one is installed."""
    global _error_file_handler

    if _error_file_handler is None:
        return
    logging.getLogger().removeHandler(_error_file_handler)
    _error_file_handler.close()
    _error_file_handler = None
