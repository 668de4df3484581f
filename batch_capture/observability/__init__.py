"""Observability utilities (redaction, error logging)."""

from batch_capture.observability.error_log_file import (
    close_error_log_file,
    get_error_log_handler,
    setup_error_log_file,
)
from batch_capture.observability.redaction import redact_text, sanitize

__all__ = [
    "close_error_log_file",
    "get_error_log_handler",
    "redact_text",
    "sanitize",
    "setup_error_log_file",
]
