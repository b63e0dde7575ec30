"""loopgate -- pauseable cooperative execution loop.

Lets an external actor suspend, resume and stop a step-based asyncio loop
at well-defined checkpoints without losing its position.
"""

from loopgate.config import LoopConfig
from loopgate.controller import LoopController, LoopResult, StepExecutor, TerminationReason
from loopgate.errors import LoopBusyError, LoopError
from loopgate.events import EventEmitter, EventHandler, EventKind, LoopEvent
from loopgate.sources import CyclicBatches, StepSource, as_step_source

__all__ = [
    # Controller
    "LoopController",
    "LoopConfig",
    "LoopResult",
    "StepExecutor",
    "TerminationReason",
    # Events
    "EventEmitter",
    "EventHandler",
    "EventKind",
    "LoopEvent",
    # Step sources
    "StepSource",
    "CyclicBatches",
    "as_step_source",
    # Errors
    "LoopError",
    "LoopBusyError",
]
