"""Exception hierarchy for batch screenshot capture."""

from __future__ import annotations


class CaptureError(Exception):
    """Base class for all capture errors."""


class ConfigurationError(CaptureError, ValueError):
    """Raised when a batch cannot start because its inputs are invalid."""


class SubmissionError(CaptureError):
    """Raised when the remote service rejects a job creation call."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body


class TransportError(CaptureError):
    """Raised on network, timeout, HTTP status or payload errors."""


class PersistenceError(CaptureError):
    """Raised when a screenshot cannot be written to local storage."""


class PollingAbortedError(CaptureError):
    """Raised when a job's status could not be fetched too many times in a row."""

    def __init__(self, job_id: str, attempts: int) -> None:
        super().__init__(
            f"Giving up on job {job_id} after {attempts} consecutive status fetch failures"
        )
        self.job_id = job_id
        self.attempts = attempts
