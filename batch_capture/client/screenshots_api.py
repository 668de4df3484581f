"""Async REST client for the remote screenshots API.

Wraps an ``httpx.AsyncClient`` and maps every failure onto the package's
error taxonomy so that the capture engine never sees httpx exceptions.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from batch_capture.config import CaptureConfig
from batch_capture.errors import SubmissionError, TransportError
from batch_capture.models.api import (
    BrowserInfo,
    ScreenshotJobResponse,
    browser_from_info,
    build_job_request,
    job_from_response,
)
from batch_capture.models.domain import BrowserProfile, Job, JobConfig
from batch_capture.observability.redaction import redact_text, sanitize

logger = logging.getLogger(__name__)

_BROWSER_LIST = TypeAdapter(list[BrowserInfo])


class ScreenshotsApi:
    """Client for the remote screenshots service.

    Authentication is attached per call according to the
    ``authenticate_for_*`` flags of the configuration.
    """

    def __init__(
        self,
        config: CaptureConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Capture configuration (base URL, credentials, timeouts).
            http_client: Optional preconfigured client. When omitted the API
                creates and owns one.
        """
        self.config = config
        self.base_url = config.api_base_url if config.api_base_url.endswith("/") else f"{config.api_base_url}/"
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.request_timeout_seconds)

    async def __aenter__(self) -> "ScreenshotsApi":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def _auth(self, enabled: bool) -> httpx.BasicAuth | None:
        if not enabled:
            return None
        if not self.config.has_credentials:
            logger.debug("Authentication requested but no credentials are configured")
            return None
        return httpx.BasicAuth(self.config.username or "", self.config.password or "")

    async def _request(
        self,
        method: str,
        url: str,
        *,
        authenticate: bool,
        json: Any = None,
    ) -> httpx.Response:
        try:
            return await self._http.request(method, url, json=json, auth=self._auth(authenticate))
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {redact_text(url)} failed: {e}") from e

    @staticmethod
    def _ensure_success(response: httpx.Response) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"{response.request.method} {redact_text(str(response.request.url))} "
                f"returned {response.status_code} {response.reason_phrase}"
            ) from e

    async def get_browsers(self) -> list[BrowserProfile]:
        """List the browsers and devices the service can capture in."""
        response = await self._request(
            "GET",
            f"{self.base_url}browsers.json",
            authenticate=self.config.authenticate_for_get_browsers,
        )
        self._ensure_success(response)
        try:
            infos = _BROWSER_LIST.validate_json(response.content)
        except ValidationError as e:
            raise TransportError(f"Unexpected browser list payload: {e}") from e
        return [browser_from_info(info) for info in infos]

    async def submit(
        self,
        url: str,
        job_config: JobConfig,
        using_tunnel: bool,
        browsers: Sequence[BrowserProfile],
    ) -> Job:
        """Start a screenshot job.

        Args:
            url: Page to capture.
            job_config: Rendering options.
            using_tunnel: Whether the service must reach the page through a
                tunnel that was set up externally.
            browsers: Browsers to capture in.

        Returns:
            The created Job as reported by the service.

        Raises:
            SubmissionError: The service answered with a non-success status
                or an unreadable body.
            TransportError: The request never got an answer.
        """
        payload = build_job_request(url, job_config, using_tunnel, list(browsers))
        logger.debug("Submitting job: %s", sanitize(payload))

        response = await self._request(
            "POST",
            self.base_url,
            authenticate=self.config.authenticate_for_start_job,
            json=payload,
        )
        body = response.text
        if not response.is_success:
            raise SubmissionError(
                "Error while starting the job. Response status is "
                f"{response.reason_phrase} ({response.status_code}). "
                f"Response is: {redact_text(body, max_chars=1000)}",
                status_code=response.status_code,
                reason=response.reason_phrase,
                body=redact_text(body),
            )

        try:
            return job_from_response(ScreenshotJobResponse.model_validate_json(body))
        except (ValidationError, ValueError) as e:
            raise SubmissionError(
                f"Unreadable job creation response: {e}",
                status_code=response.status_code,
                reason=response.reason_phrase,
                body=redact_text(body),
            ) from e

    async def fetch_status(self, job_id: str) -> Job:
        """Fetch a job's current state and screenshot list."""
        response = await self._request(
            "GET",
            f"{self.base_url}{quote(job_id, safe='')}.json",
            authenticate=self.config.authenticate_for_get_job_info,
        )
        self._ensure_success(response)
        try:
            return job_from_response(ScreenshotJobResponse.model_validate_json(response.content))
        except (ValidationError, ValueError) as e:
            raise TransportError(f"Unexpected status payload for job {job_id}: {e}") from e

    async def download(self, source_url: str) -> bytes:
        """Download a screenshot or thumbnail image."""
        response = await self._request(
            "GET",
            source_url,
            authenticate=self.config.authenticate_for_get_screenshot_images,
        )
        self._ensure_success(response)
        return response.content
