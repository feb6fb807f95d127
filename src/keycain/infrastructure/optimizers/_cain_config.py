"""
Immutable hyperparameter bundle for the Cain optimiser.

`CainConfig` is fixed when the optimiser is built and never changes for the
lifetime of a run. Values are used as given: out-of-range hyperparameters are
not rejected and simply produce degenerate adaptation. The single exception
is `num_subbatches`, which is clamped to at least 2 on construction because
the hold-one-out variance estimate needs two sub-batches.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass


MIN_NUM_SUBBATCHES = 2.0


@dataclass(frozen=True)
class CainConfig:
    """
    Cain hyperparameters.

    Attributes
    ----------
    num_subbatches : float
        Number of sub-batches drawn per step. Stored as a float because it
        enters the variance-scaling formulas as a real number. Always >= 2.
    momentum : float
        Decay of the momentum (gradient moving-average) vector, in [0, 1).
    aggression : float
        Offset added to the momentum similarity before the learning rate is
        adapted. Larger values favour growing the step length.
    target_err : float
        Desired relative standard error of the sub-batch gradient mean.
    subbatch_increase_damping : float
        Exponent applied to the relative error when the batch grows.
    subbatch_decrease_damping : float
        Exponent applied to the relative error when the batch shrinks.
    rate_adapt_coefficient : float
        Base of the multiplicative learning-rate update (> 1).
    max_eval_batch_size : int
        Largest number of samples passed to a single `backprop` call.
    min_subbatch_size : int
        Lower bound for the adaptive sub-batch size (>= 1).
    """

    num_subbatches: float = 8.0
    momentum: float = 0.9
    aggression: float = 0.75
    target_err: float = 0.75
    subbatch_increase_damping: float = 0.15
    subbatch_decrease_damping: float = 0.15
    rate_adapt_coefficient: float = 1.05
    max_eval_batch_size: int = sys.maxsize
    min_subbatch_size: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "num_subbatches", max(float(self.num_subbatches), MIN_NUM_SUBBATCHES)
        )

    @property
    def curvature_decay(self) -> float:
        """
        Decay factor of the curvature moving average.

        Returns
        -------
        float
            ``max(momentum ** 0.25, 0.9)``.
        """
        return max(self.momentum ** 0.25, 0.9)
