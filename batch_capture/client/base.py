"""Interface the capture engine expects from the remote service client."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from batch_capture.models.domain import BrowserProfile, Job, JobConfig


@runtime_checkable
class RemoteJobClient(Protocol):
    """Submits jobs, fetches their status and downloads finished images.

    Implementations raise SubmissionError from submit() when the service
    rejects a job and TransportError on network, timeout or payload errors.
    """

    async def submit(
        self,
        url: str,
        job_config: JobConfig,
        using_tunnel: bool,
        browsers: Sequence[BrowserProfile],
    ) -> Job: ...

    async def fetch_status(self, job_id: str) -> Job: ...

    async def download(self, source_url: str) -> bytes: ...
