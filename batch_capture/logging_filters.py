"""Logging helpers and filters.

This module centralizes small logging tweaks so they can be applied from
multiple entrypoints (the CLI and library users embedding the orchestrator).
"""

from __future__ import annotations

import logging
from typing import Any

from batch_capture.observability.redaction import redact_text

HTTPX_LOGGER_NAME = "httpx"


def _is_status_poll(method: str, url: str) -> bool:
    path = url.split("?", 1)[0]
    return method.upper() == "GET" and path.endswith(".json") and not path.endswith("/browsers.json")


class SuppressStatusPollLog(logging.Filter):
    """Drop httpx request records for job status polling.

    A batch polls every running job every few seconds, which buries useful
    lines like:
        HTTP Request: POST https://www.browserstack.com/screenshots/ "HTTP/1.1 200 OK"
    under hundreds of status fetches. Everything else passes through.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (filter)
        # httpx logs with %-formatting args:
        #   (method, url, http_version, status_code, reason_phrase)
        try:
            args: Any = record.args
            if isinstance(args, tuple) and len(args) >= 2:
                if _is_status_poll(str(args[0]), str(args[1])):
                    return False
                return True

            message = record.getMessage()
            if message.startswith("HTTP Request: "):
                parts = message.split(" ")
                if len(parts) >= 4 and _is_status_poll(parts[2], parts[3]):
                    return False
        except Exception:
            # Never break logging.
            return True

        return True


class RedactCredentialsFilter(logging.Filter):
    """Mask credentials that would otherwise end up in log output."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (filter)
        try:
            message = record.getMessage()
        except Exception:
            return True

        redacted = redact_text(message, max_chars=0)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def install_httpx_log_filters() -> None:
    """Install filters for the httpx logger.

    Safe to call multiple times.
    """

    httpx_logger = logging.getLogger(HTTPX_LOGGER_NAME)

    for existing in httpx_logger.filters:
        if isinstance(existing, SuppressStatusPollLog):
            return

    httpx_logger.addFilter(SuppressStatusPollLog())


def install_redaction_filter(handler: logging.Handler) -> None:
    """Attach the credential redaction filter to a handler, once."""

    for existing in handler.filters:
        if isinstance(existing, RedactCredentialsFilter):
            return

    handler.addFilter(RedactCredentialsFilter())
