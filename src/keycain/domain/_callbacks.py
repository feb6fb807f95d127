"""
Step-callback contracts for KeyCain run loops.

A run loop (`optimise_from`) has no intrinsic iteration limit: after every
completed step it hands a read-only snapshot of the run to each registered
callback, in registration order, and stops once any of them answers
`CallbackSignal.STOP`.

Callbacks are typically stateful (step limits, validation evaluators,
checkpoint writers). Persisting parameters is a callback's job, never the
optimiser's.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from ._graph import IGraph


class CallbackSignal(Enum):
    """
    Answer returned by a step callback.

    Members
    -------
    CONTINUE
        Keep optimising.
    STOP
        Terminate the run loop after the current round of callbacks.
    """

    CONTINUE = "continue"
    STOP = "stop"


@dataclass(frozen=True)
class CallbackData:
    """
    Snapshot of a run handed to step callbacks.

    Attributes
    ----------
    loss : float
        Mean sub-batch loss of the step that just completed.
    step_count : int
        Number of completed steps.
    eval_count : int
        Number of samples evaluated so far.
    graph : IGraph
        The graph being optimised, for callbacks that evaluate or inspect it.
    params : Sequence[float]
        Current parameter vector. Infrastructure implementations pass a
        non-writeable copy.
    """

    loss: float
    step_count: int
    eval_count: int
    graph: IGraph
    params: Sequence[float]


@runtime_checkable
class IStepCallback(Protocol):
    """
    Callback invoked by a run loop after every step.
    """

    def on_step(self, data: CallbackData) -> Optional[CallbackSignal]:
        """
        React to a completed step.

        Parameters
        ----------
        data : CallbackData
            Read-only snapshot of the run.

        Returns
        -------
        Optional[CallbackSignal]
            `CallbackSignal.STOP` to end the run. `CONTINUE` (or None) keeps
            it going.
        """
        ...


def is_stop(signal: Any) -> bool:
    """Return True when `signal` asks the run loop to stop."""
    return signal is CallbackSignal.STOP
