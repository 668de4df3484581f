"""Typed lifecycle events and the bus that delivers them to observers.

Events are published inline by the task that caused them, so for a given
job observers see them in the order they happened (a state change always
precedes the screenshots handled because of it).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

from batch_capture.enums import BatchEventType, JobState
from batch_capture.models.domain import BrowserProfile, Job, JobConfig, Screenshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchEvent:
    """Base class of all batch lifecycle events."""

    event_type: ClassVar[BatchEventType]


@dataclass(frozen=True)
class JobStarted(BatchEvent):
    event_type: ClassVar[BatchEventType] = BatchEventType.JOB_STARTED

    job: Job


@dataclass(frozen=True)
class JobStateChanged(BatchEvent):
    event_type: ClassVar[BatchEventType] = BatchEventType.JOB_STATE_CHANGED

    job: Job
    previous_state: JobState | None = None

    @property
    def state(self) -> JobState:
        return self.job.state


@dataclass(frozen=True)
class JobCompleted(BatchEvent):
    event_type: ClassVar[BatchEventType] = BatchEventType.JOB_COMPLETED

    job: Job


@dataclass(frozen=True)
class JobFailedToStart(BatchEvent):
    """A unit whose job could not be created."""

    event_type: ClassVar[BatchEventType] = BatchEventType.JOB_FAILED_TO_START

    url: str
    job_config: JobConfig
    browsers: tuple[BrowserProfile, ...]
    error: BaseException


@dataclass(frozen=True)
class JobFailed(BatchEvent):
    """A job that was created but could not be followed to completion."""

    event_type: ClassVar[BatchEventType] = BatchEventType.JOB_FAILED

    job_id: str
    url: str
    job_config: JobConfig
    browsers: tuple[BrowserProfile, ...]
    error: BaseException


@dataclass(frozen=True)
class ScreenshotCompleted(BatchEvent):
    """Handling of a screenshot finished, successfully or not."""

    event_type: ClassVar[BatchEventType] = BatchEventType.SCREENSHOT_COMPLETED

    job_id: str
    screenshot: Screenshot
    image_path: Path | None = None
    thumbnail_path: Path | None = None


@dataclass(frozen=True)
class ScreenshotFailed(BatchEvent):
    event_type: ClassVar[BatchEventType] = BatchEventType.SCREENSHOT_FAILED

    job_id: str
    screenshot: Screenshot
    error: BaseException
    image_name: str | None = None


EventHandler = Callable[[BatchEvent], Awaitable[None] | None]


@dataclass
class _Subscription:
    handler: EventHandler
    event_types: frozenset[BatchEventType] = field(default_factory=frozenset)

    def wants(self, event: BatchEvent) -> bool:
        return not self.event_types or event.event_type in self.event_types


class EventBus:
    """Delivers batch events to subscribed handlers and open queues.

    Handlers may be plain or async callables; async handlers are awaited
    before publish() returns. A failing handler is logged and skipped.
    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []
        self._queues: list[asyncio.Queue[BatchEvent]] = []

    def subscribe(self, handler: EventHandler, *event_types: BatchEventType) -> Callable[[], None]:
        """Register a handler, optionally for specific event types only.

        Returns:
            A callable that removes the subscription.
        """
        subscription = _Subscription(handler=handler, event_types=frozenset(event_types))
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def open_queue(self) -> asyncio.Queue[BatchEvent]:
        """Return an unbounded queue that receives every published event."""
        queue: asyncio.Queue[BatchEvent] = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def close_queue(self, queue: asyncio.Queue[BatchEvent]) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    async def publish(self, event: BatchEvent) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.wants(event):
                continue
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Event handler failed for %s", event.event_type)

        for queue in list(self._queues):
            queue.put_nowait(event)
