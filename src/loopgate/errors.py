"""Error hierarchy for the loop controller.

The controller performs no I/O, so the only errors it raises itself are
misuse errors. Errors raised by a step executor are never wrapped; they
propagate out of ``LoopController.run()`` unchanged.
"""

from __future__ import annotations


class LoopError(Exception):
    """Base error for all controller errors."""

    def __init__(self, message: str, *, loop_name: str | None = None) -> None:
        super().__init__(message)
        self.loop_name = loop_name


class LoopBusyError(LoopError):
    """A second run or checkpoint was started while one is already active.

    A controller owns exactly one logical loop position, so it can neither
    drive two runs at once nor park two suspensions.
    """
