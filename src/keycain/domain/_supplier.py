"""
Training-data supplier contract.

Batch iteration, shuffling and epoch bookkeeping belong to the supplier; the
optimiser only asks for the next `count` paired samples.
"""

from __future__ import annotations

from typing import Any, Protocol, Tuple, runtime_checkable


@runtime_checkable
class ISupplier(Protocol):
    """
    Source of paired (input, target) training samples.

    Notes
    -----
    - `next_n(count)` must return exactly `count` paired samples. Handling a
      partial batch at the end of an epoch is the supplier's concern.
    - `samples_taken()` is used only for progress reporting.
    """

    def next_n(self, count: int) -> Tuple[Any, Any]:
        """
        Return the next `count` samples as an ``(inputs, targets)`` pair.
        """
        ...

    def samples_taken(self) -> int:
        """
        Return the total number of samples handed out so far.
        """
        ...
