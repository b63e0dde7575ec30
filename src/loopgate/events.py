"""Event system for the loop controller.

Defines the event kinds covering a run's lifecycle, plus the event emitter
used by ``LoopController`` to notify observers. The controller never depends
on what, if anything, is subscribed.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections import deque
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventKind(StrEnum):
    """Loop event types."""

    # Suspension lifecycle
    PAUSE = "pause"
    RESUME = "resume"

    # Run lifecycle
    RUN_START = "run.start"
    RUN_END = "run.end"

    # Emitted right before the step executor is invoked
    STEP_START = "step.start"


@dataclass
class LoopEvent:
    """A single event emitted by a loop controller."""

    kind: EventKind
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": str(self.kind), "data": dict(self.data), "timestamp": self.timestamp}


# Callback type for event handlers
EventHandler = Callable[[LoopEvent], Awaitable[None] | None]


class EventEmitter:
    """Event emitter for loop events.

    ``emit()`` is synchronous: pause/resume/stop run to completion without
    suspending, so notifications must not require an await. Handlers are
    called in registration order. A handler may be a coroutine function;
    its coroutine is scheduled as a task on the running event loop.
    Exceptions in handlers are logged and never break the loop.

    Also supports queue-based subscription (``subscribe()``) and an async
    iterator (``events()``). Recent events are buffered and replayed to late
    subscribers. Call ``close()`` to end all subscriptions.
    """

    def __init__(self, history_size: int = 256) -> None:
        self._handlers: list[tuple[EventHandler, frozenset[EventKind]]] = []
        self._subscribers: list[asyncio.Queue[LoopEvent | None]] = []
        self._history: deque[LoopEvent] = deque(maxlen=history_size)
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def history(self) -> list[LoopEvent]:
        """Buffered events, oldest first."""
        return list(self._history)

    def on(self, handler: EventHandler, *kinds: EventKind) -> None:
        """Register an event handler.

        With no ``kinds`` the handler receives every event; otherwise only
        events of the given kinds.
        """
        self._handlers.append((handler, frozenset(kinds)))

    def off(self, handler: EventHandler) -> None:
        """Remove an event handler."""
        self._handlers = [(h, k) for h, k in self._handlers if h is not handler]

    def emit(self, event: LoopEvent) -> None:
        """Emit an event to all registered handlers and subscribers."""
        self._history.append(event)
        for q in self._subscribers:
            q.put_nowait(event)
        for handler, kinds in list(self._handlers):
            if kinds and event.kind not in kinds:
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    self._schedule(result)
            except Exception:
                logger.exception("Event handler %r failed on %s", handler, event.kind)

    def _schedule(self, awaitable: Awaitable[None]) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Async event handler failed", exc_info=task.exception())

    def subscribe(self) -> asyncio.Queue[LoopEvent | None]:
        """Create a subscriber queue, pre-filled with the buffered history."""
        q: asyncio.Queue[LoopEvent | None] = asyncio.Queue()
        for event in self._history:
            q.put_nowait(event)
        if self._closed:
            q.put_nowait(None)
        else:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue[LoopEvent | None]) -> None:
        """Remove a subscriber queue."""
        if q in self._subscribers:
            self._subscribers.remove(q)

    def close(self) -> None:
        """Signal termination to all subscribers. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        for q in self._subscribers:
            q.put_nowait(None)
        self._subscribers.clear()

    async def events(self) -> AsyncGenerator[LoopEvent, None]:
        """Async generator that yields events as they are emitted.

        Usage::

            async for event in controller.events.events():
                print(event.kind)

        Starts with the buffered history and exits when ``close()`` is called.
        """
        q = self.subscribe()
        try:
            while True:
                item = await q.get()
                if item is None:
                    break
                yield item
        finally:
            self.unsubscribe(q)
