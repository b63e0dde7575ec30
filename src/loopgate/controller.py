"""Loop controller -- the pauseable cooperative run loop.

The controller owns the pause/resume/stop state of exactly one loop. The
loop driver (``run``) evaluates a checkpoint before every step and once
after every batch; a checkpoint is the only place the loop can suspend or
terminate. External callers toggle state with ``pause()``, ``resume()`` and
``stop()``, which never suspend themselves.

Everything runs on one asyncio event loop, so no locks are needed: the
parked suspension is a single ``asyncio.Future`` that is cleared before it
is resolved, which makes a second release a no-op.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from loopgate.config import LoopConfig
from loopgate.errors import LoopBusyError
from loopgate.events import EventEmitter, EventKind, LoopEvent
from loopgate.sources import StepSource, as_step_source

logger = logging.getLogger(__name__)

# A step executor receives one opaque step identifier. It may be a coroutine
# function; the returned awaitable is awaited before the next checkpoint.
StepExecutor = Callable[[Any], Awaitable[None] | None]


class TerminationReason(StrEnum):
    """Why a run ended."""

    DONE = "done"  # queue_done() from inside the loop
    STOPPED = "stopped"  # stop() from outside
    ROUND_LIMIT = "round_limit"  # LoopConfig.max_rounds reached


@dataclass
class LoopResult:
    """Summary of a finished run."""

    reason: TerminationReason = TerminationReason.DONE
    steps_executed: int = 0
    rounds_started: int = 0
    pause_count: int = 0
    duration_seconds: float = 0.0


class LoopController:
    """Pause/resume/stop controller for a single step-based loop.

    Usage::

        controller = LoopController()
        controller.events.on(print, EventKind.PAUSE, EventKind.RESUME)

        task = asyncio.create_task(controller.run([["a", "b"]], execute))
        controller.pause()    # takes effect at the next checkpoint
        controller.resume()   # releases the parked checkpoint
        controller.stop()     # ends the run at the next checkpoint
        result = await task
    """

    def __init__(
        self,
        config: LoopConfig | None = None,
        *,
        events: EventEmitter | None = None,
    ) -> None:
        self._config = config or LoopConfig()
        self._events = events or EventEmitter(history_size=self._config.history_size)
        self._paused = False
        self._done = False
        self._stop_requested = False
        self._running = False
        self._pause_count = 0
        # Single-shot release handle; set iff a checkpoint is parked.
        self._pending_release: asyncio.Future[None] | None = None

    @property
    def config(self) -> LoopConfig:
        return self._config

    @property
    def events(self) -> EventEmitter:
        return self._events

    @property
    def paused(self) -> bool:
        """Whether a pause is requested. The loop may not have parked yet."""
        return self._paused

    @property
    def suspended(self) -> bool:
        """Whether the loop is currently parked at a checkpoint."""
        return self._pending_release is not None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------ #
    # External control
    # ------------------------------------------------------------------ #

    def pause(self) -> None:
        """Request a pause. Takes effect at the loop's next checkpoint."""
        if not self._paused:
            logger.debug("Loop %r pause requested", self._config.name)
        self._paused = True

    def resume(self) -> None:
        """Clear the pause request and release a parked checkpoint, if any.

        Emits ``resume`` only when a suspension was actually released.
        """
        self._paused = False
        if self._release():
            logger.debug("Loop %r resumed", self._config.name)
            self._emit(EventKind.RESUME)

    def stop(self) -> None:
        """End the run at its next checkpoint, unblocking it if paused."""
        logger.debug("Loop %r stop requested (paused=%s)", self._config.name, self._paused)
        self._done = True
        self._stop_requested = True
        if self._paused:
            self._paused = False
            if self._release() and self._config.stop_emits_resume:
                self._emit(EventKind.RESUME, stopped=True)

    def queue_done(self) -> None:
        """Mark the run as finished; used by the step executor itself."""
        self._done = True

    def _release(self) -> bool:
        release = self._pending_release
        if release is None:
            return False
        self._pending_release = None
        if not release.done():
            release.set_result(None)
        return True

    def _emit(self, kind: EventKind, **data: Any) -> None:
        self._events.emit(LoopEvent(kind=kind, data={"loop": self._config.name, **data}))

    # ------------------------------------------------------------------ #
    # Checkpoint
    # ------------------------------------------------------------------ #

    async def wait_if_paused(
        self,
        *,
        round_index: int | None = None,
        step_index: int | None = None,
    ) -> None:
        """Suspend here while a pause is requested.

        Returns immediately, with no event, when not paused. Otherwise parks
        a release handle, emits ``pause`` and waits until ``resume()`` or
        ``stop()`` releases it. If ``pause()`` is called again before the
        loop wakes up, the checkpoint parks again. Once ``stop()`` has been
        requested during a run, the checkpoint never parks again in that run.

        Raises:
            LoopBusyError: Another checkpoint is already parked.
        """
        while self._paused and not (self._running and self._stop_requested):
            if self._pending_release is not None:
                raise LoopBusyError(
                    "a checkpoint is already parked on this controller",
                    loop_name=self._config.name,
                )
            release: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            # Park before notifying so a handler that resumes synchronously
            # finds the handle.
            self._pending_release = release
            self._pause_count += 1
            logger.debug(
                "Loop %r paused at round=%s step=%s",
                self._config.name,
                round_index,
                step_index,
            )
            self._emit(EventKind.PAUSE, round=round_index, step=step_index)
            try:
                await release
            finally:
                if self._pending_release is release:
                    self._pending_release = None

    # ------------------------------------------------------------------ #
    # Loop driver
    # ------------------------------------------------------------------ #

    async def run(
        self,
        batches: StepSource | Sequence[Sequence[Any]],
        step_executor: StepExecutor,
    ) -> LoopResult:
        """Drive the loop over ``batches`` until done, stopped or limited.

        A plain sequence of batches is cycled round-robin. Before each step
        and once after each batch the checkpoint is evaluated; if the run is
        done at that point it terminates without executing anything further.

        Args:
            batches: A ``StepSource`` or a non-empty sequence of batches.
            step_executor: Called once per step identifier. May call
                ``pause()``, ``stop()`` or ``queue_done()``.

        Returns:
            LoopResult describing how the run ended.

        Raises:
            LoopBusyError: A run is already in progress on this controller.
            ValueError: ``batches`` is an empty sequence.
            Exception: Whatever the step executor raises, unchanged.
        """
        if self._running:
            raise LoopBusyError(
                "a run is already in progress on this controller",
                loop_name=self._config.name,
            )
        source = as_step_source(batches)

        self._running = True
        self._done = False
        self._stop_requested = False
        self._pause_count = 0
        result = LoopResult()
        start_time = time.monotonic()

        logger.info("Loop %r started", self._config.name)
        self._emit(EventKind.RUN_START)
        try:
            result.reason = await self._drive(source, step_executor, result)
        except asyncio.CancelledError:
            self._emit(EventKind.RUN_END, cancelled=True)
            raise
        except Exception as exc:
            self._emit(EventKind.RUN_END, error=f"{type(exc).__name__}: {exc}")
            raise
        finally:
            self._running = False
            self._stop_requested = False
            result.pause_count = self._pause_count
            result.duration_seconds = time.monotonic() - start_time

        logger.info(
            "Loop %r ended: reason=%s steps=%d rounds=%d pauses=%d",
            self._config.name,
            result.reason,
            result.steps_executed,
            result.rounds_started,
            result.pause_count,
        )
        self._emit(
            EventKind.RUN_END,
            reason=str(result.reason),
            steps_executed=result.steps_executed,
            rounds_started=result.rounds_started,
        )
        return result

    async def _drive(
        self,
        source: StepSource,
        step_executor: StepExecutor,
        result: LoopResult,
    ) -> TerminationReason:
        max_rounds = self._config.max_rounds
        while True:
            index = result.rounds_started
            result.rounds_started += 1

            for step_index, step in enumerate(source.batch(index)):
                await self.wait_if_paused(round_index=index, step_index=step_index)
                if self._done:
                    return self._termination_reason()
                self._emit(EventKind.STEP_START, round=index, step=step_index, id=step)
                outcome = step_executor(step)
                if inspect.isawaitable(outcome):
                    await outcome
                result.steps_executed += 1

            # Yield once per round so a source of empty batches cannot
            # starve the event loop.
            await asyncio.sleep(0)
            await self.wait_if_paused(round_index=index)
            if self._done:
                return self._termination_reason()
            if max_rounds is not None and result.rounds_started >= max_rounds:
                return TerminationReason.ROUND_LIMIT

    def _termination_reason(self) -> TerminationReason:
        if self._stop_requested:
            return TerminationReason.STOPPED
        return TerminationReason.DONE
