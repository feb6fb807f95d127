"""
Built-in step callbacks for KeyCain run loops.

A run loop (`Cain.optimise_from`) has no iteration limit of its own, so at
least one callback that eventually answers `CallbackSignal.STOP` is needed to
terminate it. This module provides the common ones, plus a passive recorder
of per-step losses in the manner of Keras' `History` object.

Design goals
------------
- Callbacks are small, stateful objects implementing ``on_step(data)``.
- Recording callbacks never stop a run; limit callbacks never record.
- No dependency on NumPy or on the optimiser implementation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ...domain._callbacks import CallbackData, CallbackSignal


@dataclass
class FunctionCallback:
    """
    Adapt a plain callable to the `IStepCallback` protocol.

    Attributes
    ----------
    func : Callable[[CallbackData], Optional[CallbackSignal]]
        Function invoked with every step snapshot. A None return is treated
        as `CallbackSignal.CONTINUE`.
    """

    func: Callable[[CallbackData], Optional[CallbackSignal]]

    def on_step(self, data: CallbackData) -> CallbackSignal:
        signal = self.func(data)
        return CallbackSignal.CONTINUE if signal is None else signal


@dataclass
class StopAfterSteps:
    """
    Stop the run once `max_steps` steps have completed.
    """

    max_steps: int

    def on_step(self, data: CallbackData) -> CallbackSignal:
        if data.step_count >= self.max_steps:
            return CallbackSignal.STOP
        return CallbackSignal.CONTINUE


@dataclass
class StopAfterEvaluations:
    """
    Stop the run once at least `max_evals` samples have been evaluated.

    Notes
    -----
    Evaluations are counted per sample, so the run may overshoot the limit
    by up to one step's worth of samples.
    """

    max_evals: int

    def on_step(self, data: CallbackData) -> CallbackSignal:
        if data.eval_count >= self.max_evals:
            return CallbackSignal.STOP
        return CallbackSignal.CONTINUE


@dataclass
class LossHistory:
    """
    Per-step record of training losses.

    Attributes
    ----------
    history : Dict[str, List[float]]
        Mapping from metric name ("loss", "eval_count") to per-step values.
    step : List[int]
        Step counts (1-based, as reported by the optimiser) matching the
        entries in `history`.

    Notes
    -----
    - All metric values are stored as Python `float`.
    - This callback is passive: it always answers `CONTINUE`.
    """

    history: Dict[str, List[float]] = field(default_factory=dict)
    step: List[int] = field(default_factory=list)

    def _ensure_key(self, k: str) -> None:
        if k not in self.history:
            self.history[k] = []

    def on_step(self, data: CallbackData) -> CallbackSignal:
        """
        Append the loss and evaluation count of a completed step.
        """
        self.step.append(int(data.step_count))
        for k, v in (("loss", data.loss), ("eval_count", data.eval_count)):
            self._ensure_key(k)
            self.history[k].append(float(v))
        return CallbackSignal.CONTINUE

    def last(self) -> Dict[str, float]:
        """
        Return the values recorded for the most recent step.

        Returns
        -------
        Dict[str, float]
            Mapping from metric name to its latest value. Metrics with no
            recorded values are omitted.
        """
        out: Dict[str, float] = {}
        for k, vs in self.history.items():
            if vs:
                out[k] = float(vs[-1])
        return out
