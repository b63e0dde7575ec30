"""Configuration for a loop controller."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class LoopConfig:
    """Configuration for a ``LoopController``.

    Controls naming, the stop/resume notification policy and optional limits.
    """

    name: str = "loop"

    # When stop() releases a parked suspension, emit the same ``resume``
    # event that resume() would. Set False to release silently.
    stop_emits_resume: bool = True

    # Cap on the number of rounds (batches) a run may start. None = unbounded,
    # the run ends only through queue_done() or stop().
    max_rounds: int | None = None

    # Number of events kept for replay to late subscribers.
    history_size: int = 256

    def __post_init__(self) -> None:
        if self.max_rounds is not None and self.max_rounds < 1:
            raise ValueError(f"max_rounds must be >= 1 or None, got {self.max_rounds}")
        if self.history_size < 0:
            raise ValueError(f"history_size must be >= 0, got {self.history_size}")
