"""Bounded-concurrency admission of capture units.

The remote service enforces a ceiling on concurrently running jobs per
account. The gate keeps the number of admitted units at or below that
ceiling; units that cannot be admitted back off and retry.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class AdmissionGate:
    """Counter of in-use concurrency slots, safe across tasks and threads.

    Only the check-and-increment and the decrement are guarded; callers
    waiting for a slot sleep between attempts instead of spinning.
    """

    DEFAULT_RETRY_DELAY_SECONDS = 1.0

    def __init__(self, limit: int, retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS) -> None:
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self._limit = limit
        self._retry_delay = retry_delay
        self._in_use = 0
        self._peak = 0
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def peak(self) -> int:
        """Highest number of simultaneously admitted units seen so far."""
        return self._peak

    def try_admit(self) -> bool:
        """Try to take a slot without waiting.

        Returns:
            True if a slot was taken; the caller must release() it exactly once.
        """
        # Unguarded fast path; the re-check under the lock is authoritative.
        if self._in_use >= self._limit:
            return False

        with self._lock:
            if self._in_use >= self._limit:
                return False
            self._in_use += 1
            if self._in_use > self._peak:
                self._peak = self._in_use
            return True

    def release(self) -> None:
        """Give back a slot taken by try_admit()."""
        with self._lock:
            if self._in_use <= 0:
                raise RuntimeError("release() called without a matching admission")
            self._in_use -= 1

    async def admit(self) -> None:
        """Wait until a slot is taken, retrying after a fixed delay."""
        attempts = 0
        while not self.try_admit():
            attempts += 1
            if attempts == 1:
                logger.debug(
                    "All %d sessions busy, retrying every %.2fs", self._limit, self._retry_delay
                )
            await asyncio.sleep(self._retry_delay)

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a slot for the duration of the block, releasing it on any exit."""
        await self.admit()
        try:
            yield
        finally:
            self.release()
