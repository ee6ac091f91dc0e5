"""Processing Monitor: triggers background matching and waits for completion.

The monitor owns four timers: status-text rotation, the synthetic progress
tick, the status poll and the hard timeout. All of them are cancelled when
the run succeeds, fails, times out or when the owner calls ``close()``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from ..client.services import MatchingService
from ..core.config import Settings, settings as default_settings
from ..core.errors import (
    AuthenticationError,
    InvalidTransitionError,
    PipelineError,
    ProcessingTimeoutError,
)
from .navigation import Navigate, Stage
from .notices import NoticeBoard

logger = logging.getLogger(__name__)

STATUS_MESSAGES = (
    "Analyzing resumes...",
    "Matching skills and experience...",
    "Calculating compatibility scores...",
    "Preparing candidate profiles...",
    "Almost ready...",
)

MAX_PROGRESS_STEP = 15.0


class PollTask:
    """Runs ``callback`` every ``interval`` seconds until cancelled.

    Example:
        >>> ticker = PollTask(2.0, refresh, name="status")
        >>> ticker.start()
        >>> ticker.cancel()
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Any],
        *,
        immediate: bool = False,
        name: str = "poll",
    ) -> None:
        self.interval = interval
        self.name = name
        self._callback = callback
        self._immediate = immediate
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._cancelled and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            raise InvalidTransitionError(f"{self.name} timer was already started")
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        if not self._immediate:
            await asyncio.sleep(self.interval)
        while True:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
            await asyncio.sleep(self.interval)


class SyntheticProgress:
    """Cosmetic progress value: random increments, never decreasing, capped at 100."""

    def __init__(self, rng: Callable[[], float] = random.random) -> None:
        self._rng = rng
        self.value = 0.0

    def tick(self) -> float:
        step = max(0.0, self._rng()) * MAX_PROGRESS_STEP
        self.value = min(100.0, self.value + step)
        return self.value

    def complete(self) -> None:
        self.value = 100.0


class MonitorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass(frozen=True)
class MonitorOutcome:
    state: MonitorState
    search_id: int | None = None
    error: str | None = None
    navigate: Navigate | None = None


class ProcessingMonitor:
    """Observes background processing for one search.

    ``next_stage`` is where the caller goes once processing is done: intake
    right after a shortlist is created, results after the last intake
    submission.
    """

    def __init__(
        self,
        matching: MatchingService,
        search_id: int | None = None,
        *,
        next_stage: Stage = Stage.RESULTS,
        notices: NoticeBoard | None = None,
        config: Settings | None = None,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._matching = matching
        self._search_id = search_id
        self._next_stage = next_stage
        self._config = config or default_settings
        self.notices = notices or NoticeBoard(self._config)
        self.state = MonitorState.IDLE
        self.status_index = 0
        self.progress = SyntheticProgress(rng)
        self.outcome: MonitorOutcome | None = None

        self._result: Optional[asyncio.Future] = None
        self._starter: Optional[asyncio.Task] = None
        self._timeout: Optional[asyncio.TimerHandle] = None
        self._rotation = PollTask(self._config.STATUS_ROTATE_SECONDS, self._rotate, name="status-rotation")
        self._ticker = PollTask(self._config.PROGRESS_TICK_SECONDS, self.progress.tick, name="progress")
        self._poller = PollTask(
            self._config.POLL_INTERVAL_SECONDS, self._poll, immediate=True, name="processing-poll"
        )

    @property
    def status_text(self) -> str:
        return STATUS_MESSAGES[self.status_index]

    @property
    def timers_active(self) -> bool:
        return (
            self._rotation.running
            or self._ticker.running
            or self._poller.running
            or self._timeout is not None
            or self._starter is not None
        )

    async def run(self) -> MonitorOutcome:
        """Trigger processing and wait for completion, failure or timeout."""
        if self.state != MonitorState.IDLE:
            raise InvalidTransitionError("The processing monitor has already run.")
        loop = asyncio.get_running_loop()
        self.state = MonitorState.RUNNING
        self._result = loop.create_future()
        logger.info("processing started", extra={"search_id": self._search_id})

        self._timeout = loop.call_later(self._config.PROCESSING_TIMEOUT_SECONDS, self._on_timeout)
        self._rotation.start()
        self._ticker.start()
        self._starter = loop.create_task(self._start_processing())
        try:
            return await self._result
        finally:
            self._cancel_timers()

    def close(self) -> None:
        """Tear down; safe to call at any time and more than once."""
        self._cancel_timers()
        if self.state in (MonitorState.IDLE, MonitorState.RUNNING):
            self._finish(MonitorOutcome(MonitorState.CLOSED, self._search_id))

    # -- timer callbacks -------------------------------------------------

    async def _start_processing(self) -> None:
        try:
            await self._matching.trigger_processing()
        except AuthenticationError as exc:
            self._fail(exc.message)
            return
        except PipelineError as exc:
            # Processing may already be running server-side; the poll decides.
            logger.warning("trigger processing failed: %s", exc.message)
        if self.state == MonitorState.RUNNING:
            self._poller.start()

    def _rotate(self) -> None:
        self.status_index = (self.status_index + 1) % len(STATUS_MESSAGES)

    async def _poll(self) -> None:
        try:
            status = await self._matching.check_processing()
        except AuthenticationError as exc:
            self._fail(exc.message)
            return
        except PipelineError as exc:
            logger.warning("processing poll failed: %s", exc.message)
            return
        if not status.processed:
            return
        search_id = status.search_id if status.search_id is not None else self._search_id
        if search_id is None:
            self._fail("Processing finished but no search id was reported.")
            return
        self.progress.complete()
        logger.info("processing complete", extra={"search_id": search_id})
        self._finish(
            MonitorOutcome(
                MonitorState.SUCCEEDED,
                search_id,
                navigate=Navigate(self._next_stage, search_id),
            )
        )

    def _on_timeout(self) -> None:
        self._timeout = None
        message = ProcessingTimeoutError().message
        logger.warning("processing timed out", extra={"search_id": self._search_id})
        self.notices.error(message)
        self._finish(MonitorOutcome(MonitorState.TIMED_OUT, self._search_id, error=message))

    # -- helpers ---------------------------------------------------------

    def _fail(self, message: str) -> None:
        logger.warning("processing monitor failed: %s", message)
        self.notices.error(message)
        self._finish(MonitorOutcome(MonitorState.FAILED, self._search_id, error=message))

    def _finish(self, outcome: MonitorOutcome) -> None:
        if self.outcome is not None:
            return
        self.outcome = outcome
        self.state = outcome.state
        self._cancel_timers()
        if self._result is not None and not self._result.done():
            self._result.set_result(outcome)

    def _cancel_timers(self) -> None:
        if self._timeout is not None:
            self._timeout.cancel()
            self._timeout = None
        self._rotation.cancel()
        self._ticker.cancel()
        self._poller.cancel()
        if self._starter is not None:
            if not self._starter.done():
                self._starter.cancel()
            self._starter = None


async def wait_for_processing(
    matching: MatchingService,
    search_id: int | None = None,
    *,
    next_stage: Stage = Stage.RESULTS,
    config: Settings | None = None,
) -> MonitorOutcome:
    """Run a monitor to completion and always tear it down."""
    monitor = ProcessingMonitor(matching, search_id, next_stage=next_stage, config=config)
    try:
        return await monitor.run()
    finally:
        monitor.close()
