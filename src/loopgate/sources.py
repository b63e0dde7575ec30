"""Step sources -- where a run gets the batch for each round."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StepSource(Protocol):
    """Protocol for step sources.

    ``batch(index)`` returns the ordered step identifiers for round
    ``index`` (0-based). Step identifiers are opaque to the controller.
    """

    def batch(self, index: int) -> Sequence[Any]: ...


class CyclicBatches:
    """A fixed list of batches, repeated round-robin.

    Round ``i`` yields ``batches[i % len(batches)]``, so a run can continue
    past the supplied set until the executor signals it is done.
    """

    def __init__(self, batches: Sequence[Sequence[Any]]) -> None:
        if not batches:
            raise ValueError("CyclicBatches requires at least one batch")
        self._batches = [list(b) for b in batches]

    def __len__(self) -> int:
        return len(self._batches)

    def batch(self, index: int) -> Sequence[Any]:
        return self._batches[index % len(self._batches)]


def as_step_source(batches: StepSource | Sequence[Sequence[Any]]) -> StepSource:
    """Coerce a plain sequence of batches into a ``StepSource``."""
    if isinstance(batches, StepSource):
        return batches
    return CyclicBatches(batches)
