"""
Mutable per-run statistics of the Cain optimiser.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


STATE_DTYPE = np.float32


@dataclass
class CainState:
    """
    Statistics accumulated online by a single `Cain` instance.

    Attributes
    ----------
    momentum : np.ndarray
        Exponential moving average of per-step mean gradients.
    curvature : np.ndarray
        Un-normalised diagonal moving average of the squared deviation
        between the mean gradient and the momentum vector.
    prev_gradient : np.ndarray
        Mean gradient of the previous step.
    learning_rate : float
        Current step length multiplier.
    batch_size : float
        Continuous sub-batch size; floored only when samples are drawn.
    step_count : int
        Number of completed steps.
    eval_count : int
        Number of samples evaluated so far.

    Notes
    -----
    The vectors are owned exclusively by the optimiser and mutated in place.
    They are never handed to callbacks.
    """

    momentum: np.ndarray
    curvature: np.ndarray
    prev_gradient: np.ndarray
    learning_rate: float
    batch_size: float
    step_count: int = 0
    eval_count: int = 0

    @classmethod
    def zeros(
        cls, num_params: int, *, learning_rate: float, batch_size: float
    ) -> "CainState":
        """
        Create a fresh state with zero-filled vectors of length `num_params`.
        """
        return cls(
            momentum=np.zeros(num_params, dtype=STATE_DTYPE),
            curvature=np.zeros(num_params, dtype=STATE_DTYPE),
            prev_gradient=np.zeros(num_params, dtype=STATE_DTYPE),
            learning_rate=float(learning_rate),
            batch_size=float(batch_size),
        )

    @property
    def num_params(self) -> int:
        return int(self.momentum.shape[0])
