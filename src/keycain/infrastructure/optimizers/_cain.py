"""
Cain optimiser implementation.

Cain is a first-order optimiser in the Adam family that adapts both its
mini-batch size and its step length online. Every step:

1. draws ``num_subbatches`` independent sub-batches of ``floor(batch_size)``
   samples and averages their gradients;
2. estimates the relative noise of that mean gradient with a hold-one-out
   variance estimate and grows or shrinks the (continuous) batch size
   towards a target noise level;
3. updates a diagonal curvature estimate from the deviation between the mean
   gradient and the momentum vector;
4. scales the learning rate by ``rate_adapt_coefficient ** sim``, where
   ``sim`` measures how well the new gradient agrees with the momentum;
5. moves the parameters along the momentum vector conditioned by the
   bias-corrected curvature.

There are no convergence guarantees. The implementation is exact in the
sense that identical inputs reproduce an identical adaptive trajectory.

Design notes
------------
- The graph and the supplier are passed into every call; the optimiser only
  owns its statistics (`CainState`) and its hyperparameters (`CainConfig`).
- Parameter vectors are treated as values: `step` never writes into the
  array it receives and always returns a new one.
- Sub-batches are evaluated strictly sequentially and gradients are summed in
  draw order, so floating-point results are reproducible.
- Collaborator failures propagate unchanged. Degenerate statistics (zero
  momentum, zero hold-one-out means) are flagged with
  `NumericDegeneracyWarning` and clamped, not corrected.
"""

from __future__ import annotations

import logging
import math
import warnings
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from ...domain._callbacks import CallbackData, CallbackSignal, IStepCallback, is_stop
from ...domain._errors import NumericDegeneracyWarning
from ...domain._graph import IGraph
from ...domain._supplier import ISupplier
from ..callbacks._callbacks import FunctionCallback
from ._cain_config import CainConfig
from ._cain_report import ReportSink, StepReport
from ._cain_state import STATE_DTYPE, CainState

if TYPE_CHECKING:
    from ._cain_builder import CainBuilder

logger = logging.getLogger(__name__)

REL_ERR_BOUNDS = (0.125, 1000.0)
SIM_BOUNDS = (-8.0, 4.0)
CONDITIONING_EPS = 1e-8
# Past this many steps the curvature bias correction is indistinguishable from 1.
BIAS_CORRECTION_HORIZON = 1_000_000


def _clamp(value: float, low: float, high: float) -> float:
    """
    Clamp `value` into ``[low, high]``.

    NaN maps to `low`; infinities map to the nearer bound.
    """
    if not value >= low:
        return low
    if value > high:
        return high
    return value


def relative_error(
    mean: np.ndarray,
    gradients: Sequence[np.ndarray],
    num_subbatches: float,
    target_err: float,
) -> float:
    """
    Estimate the relative standard error of a mean gradient.

    For each sub-batch gradient ``d_i`` the hold-one-out mean

        h_i = (mean - d_i / n) * n / (n - 1)

    is the mean recomputed without sample ``i``. The relative variance is the
    sum over sub-batches of ``|d_i - h_i|^2 / (|h_i|^2 * n)`` and the result is
    ``sqrt(rel_var / n) / target_err``.

    Parameters
    ----------
    mean : np.ndarray
        Coordinate-wise mean of `gradients`.
    gradients : Sequence[np.ndarray]
        Per-sub-batch averaged gradients.
    num_subbatches : float
        ``n`` in the formulas above.
    target_err : float
        Target relative error; a return value of 1.0 means "on target".

    Returns
    -------
    float
        The unclamped relative error. Identical sub-batch gradients give 0.0;
        mutually orthogonal unit-length gradients give ``1 / target_err``.
        May be NaN or infinite when hold-one-out means vanish.
    """
    n = num_subbatches
    grads = np.stack([np.asarray(g) for g in gradients])
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        hold_one_out = (mean - grads / n) * (n / (n - 1.0))
        diff = grads - hold_one_out
        diff_dot = np.sum(diff * diff, axis=1)
        mean_dot = np.sum(hold_one_out * hold_one_out, axis=1)
        rel_var = np.float64(0.0)
        for d, m in zip(diff_dot, mean_dot):
            rel_var += np.float64(d) / (np.float64(m) * n)
        return float(np.sqrt(rel_var / n) / np.float64(target_err))


class Cain:
    """
    Cain adaptive batch-size, adaptive step-length optimiser.

    Instances are normally created with `Cain.builder()`:

        opt = Cain.builder().with_num_subbatches(4).finish(graph)
        params = opt.optimise_from(graph, supplier, params)

    Parameters
    ----------
    config : CainConfig
        Fixed hyperparameters.
    state : CainState
        Initial statistics, sized to the graph's parameter count.
    progress_sink : Optional[ReportSink], optional
        Receiver of one `StepReport` per step. None disables reporting.

    Notes
    -----
    - All statistics live in a private `CainState` mutated only by `step`.
    - Callbacks registered with `add_step_callback` run after every step of
      `optimise_from`, in registration order.
    """

    def __init__(
        self,
        config: CainConfig,
        state: CainState,
        *,
        progress_sink: Optional[ReportSink] = None,
    ) -> None:
        self.config = config
        self._state = state
        self._progress_sink = progress_sink
        self._callbacks: List[IStepCallback] = []

    @staticmethod
    def builder() -> CainBuilder:
        """
        Return a `CainBuilder` populated with the default hyperparameters.
        """
        from ._cain_builder import CainBuilder

        return CainBuilder()

    # ---- read-only views of the run ----
    @property
    def learning_rate(self) -> float:
        return self._state.learning_rate

    @property
    def batch_size(self) -> float:
        return self._state.batch_size

    @property
    def step_count(self) -> int:
        return self._state.step_count

    @property
    def eval_count(self) -> int:
        return self._state.eval_count

    # ---- callbacks ----
    def add_step_callback(
        self,
        callback: Union[IStepCallback, Callable[[CallbackData], Optional[CallbackSignal]]],
    ) -> None:
        """
        Register a step callback.

        Parameters
        ----------
        callback : IStepCallback | Callable[[CallbackData], Optional[CallbackSignal]]
            Object exposing ``on_step(data)``, or a plain callable with the
            same signature.

        Raises
        ------
        TypeError
            If `callback` is neither an `IStepCallback` nor callable.
        """
        if isinstance(callback, IStepCallback):
            self._callbacks.append(callback)
        elif callable(callback):
            self._callbacks.append(FunctionCallback(callback))
        else:
            raise TypeError(
                f"callback must implement on_step() or be callable, got {type(callback).__name__}"
            )

    # ---- sampler ----
    def part_step(
        self,
        graph: IGraph,
        supplier: ISupplier,
        params: np.ndarray,
        batch_size: int,
    ) -> Tuple[float, np.ndarray]:
        """
        Evaluate one sub-batch and return its per-sample averaged loss and gradient.

        Parameters
        ----------
        graph : IGraph
            Graph to differentiate.
        supplier : ISupplier
            Source of training samples.
        params : np.ndarray
            Parameter vector at which to evaluate.
        batch_size : int
            Number of samples in the sub-batch.

        Returns
        -------
        tuple[float, np.ndarray]
            ``(loss / batch_size, gradient / batch_size)``.

        Notes
        -----
        - `eval_count` grows by `batch_size`.
        - Sub-batches larger than ``max_eval_batch_size`` are evaluated in
          consecutive chunks whose losses and gradients are summed.
        - Supplier and graph exceptions propagate unchanged.
        """
        cap = max(int(self.config.max_eval_batch_size), 1)
        remaining = batch_size
        total_loss = np.float64(0.0)
        total_grad: Optional[np.ndarray] = None
        while True:
            chunk = min(remaining, cap)
            inputs, targets = supplier.next_n(chunk)
            loss, gradient, _aux = graph.backprop(chunk, inputs, targets, params)
            gradient = np.asarray(gradient, dtype=STATE_DTYPE)
            total_loss += np.float64(loss)
            total_grad = gradient if total_grad is None else total_grad + gradient
            remaining -= chunk
            if remaining <= 0:
                break

        with np.errstate(divide="ignore", invalid="ignore"):
            scale = np.float64(1.0) / np.float64(batch_size)
            avg_loss = float(total_loss * scale)
            avg_grad = total_grad * STATE_DTYPE(scale)

        self._state.eval_count += batch_size
        return avg_loss, avg_grad

    # ---- batch-size controller ----
    def update_batch_size(
        self, mean: np.ndarray, results: Sequence[Tuple[float, np.ndarray]]
    ) -> float:
        """
        Adapt the continuous batch size from the noise of this step's sub-batches.

        Parameters
        ----------
        mean : np.ndarray
            Mean of the sub-batch gradients.
        results : Sequence[tuple[float, np.ndarray]]
            ``(loss, gradient)`` of every sub-batch.

        Returns
        -------
        float
            Relative error clamped into ``[0.125, 1000]``.

        Notes
        -----
        The batch size is multiplied by ``rel_err ** subbatch_increase_damping``
        when noise is above target (``rel_err > 1``) and by
        ``rel_err ** subbatch_decrease_damping`` otherwise, then floored at
        ``min_subbatch_size``.
        """
        config = self.config
        raw = relative_error(
            mean,
            [gradient for _, gradient in results],
            config.num_subbatches,
            config.target_err,
        )
        if not math.isfinite(raw):
            warnings.warn(NumericDegeneracyWarning("rel_err", raw), stacklevel=2)

        rel_err = _clamp(raw, *REL_ERR_BOUNDS)
        if rel_err > 1.0:
            self._state.batch_size *= rel_err ** config.subbatch_increase_damping
        else:
            self._state.batch_size *= rel_err ** config.subbatch_decrease_damping
        self._state.batch_size = max(
            self._state.batch_size, float(config.min_subbatch_size)
        )
        return rel_err

    # ---- curvature estimator ----
    def update_curvature(self, mean: np.ndarray) -> None:
        """
        Decay the curvature estimate and add this step's squared deviation.

        Uses the momentum vector as it was *before* this step's momentum update.
        """
        decay = self.config.curvature_decay
        curvature = self._state.curvature
        curvature *= decay
        diff = mean - self._state.momentum
        curvature += diff * diff * (1.0 - decay)

    def _momentum_similarity(self, mean: np.ndarray) -> float:
        if self._state.step_count == 0:
            return 0.0

        momentum = self._state.momentum
        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = np.dot(mean, momentum) / np.dot(momentum, momentum)
        raw = self.config.aggression + float(ratio)
        if not math.isfinite(raw):
            # Zero momentum after the first step; the intended behaviour is undefined.
            warnings.warn(NumericDegeneracyWarning("sim", raw), stacklevel=3)
        return _clamp(raw, *SIM_BOUNDS)

    # ---- step engine ----
    def step(
        self, graph: IGraph, supplier: ISupplier, params: Sequence[float]
    ) -> Tuple[float, np.ndarray]:
        """
        Perform one optimisation step.

        Parameters
        ----------
        graph : IGraph
            Graph being optimised.
        supplier : ISupplier
            Source of training samples.
        params : Sequence[float]
            Current parameter vector. It is not modified.

        Returns
        -------
        tuple[float, np.ndarray]
            Mean sub-batch loss and the updated parameter vector.
        """
        config = self.config
        state = self._state
        params = np.asarray(params)

        subbatch_size = int(math.floor(state.batch_size))
        results = [
            self.part_step(graph, supplier, params, subbatch_size)
            for _ in range(int(config.num_subbatches))
        ]

        err = 0.0
        mean = np.zeros(state.num_params, dtype=STATE_DTYPE)
        for loss, gradient in results:
            err += loss
            mean += gradient
        err /= config.num_subbatches
        mean *= 1.0 / config.num_subbatches

        rel_err = self.update_batch_size(mean, results)
        self.update_curvature(mean)

        sim = self._momentum_similarity(mean)
        new_rate = state.learning_rate * config.rate_adapt_coefficient ** sim

        state.momentum *= config.momentum
        state.momentum += mean * (1.0 - config.momentum)

        curv_decay = config.curvature_decay
        if state.step_count < BIAS_CORRECTION_HORIZON:
            with np.errstate(divide="ignore"):
                correction = float(
                    np.float64(1.0) / (1.0 - curv_decay ** (state.step_count + 1))
                )
        else:
            correction = 1.0

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            conditioned = state.momentum / (
                np.sqrt(state.curvature * correction) + CONDITIONING_EPS
            )
            change = conditioned * (-new_rate)
        new_params = params + change

        step_index = state.step_count
        state.learning_rate = new_rate
        state.step_count += 1
        state.prev_gradient[...] = mean

        if self._progress_sink is not None:
            self._progress_sink(
                StepReport(
                    step_index=step_index,
                    samples_taken=int(supplier.samples_taken()),
                    loss=err,
                    rel_err=rel_err,
                    num_subbatches=config.num_subbatches,
                    batch_size=state.batch_size,
                    sim=sim,
                    learning_rate=new_rate,
                    movement=float(np.sqrt(np.dot(change, change))),
                )
            )

        return err, new_params

    # ---- run loop ----
    def optimise_from(
        self, graph: IGraph, supplier: ISupplier, params: Sequence[float]
    ) -> np.ndarray:
        """
        Run steps until a callback requests a stop.

        Parameters
        ----------
        graph : IGraph
            Graph being optimised; also handed to callbacks.
        supplier : ISupplier
            Source of training samples.
        params : Sequence[float]
            Starting parameter vector.

        Returns
        -------
        np.ndarray
            Parameter vector after the final step.

        Notes
        -----
        - There is no built-in iteration limit. Without a callback that
          eventually returns `CallbackSignal.STOP` this never returns.
        - When a callback stops the run, the callbacks registered after it
          still see the final step.
        """
        current = np.asarray(params)
        while True:
            loss, current = self.step(graph, supplier, current)

            snapshot = current.copy()
            snapshot.flags.writeable = False
            data = CallbackData(
                loss=loss,
                step_count=self._state.step_count,
                eval_count=self._state.eval_count,
                graph=graph,
                params=snapshot,
            )

            stop = False
            for callback in self._callbacks:
                if is_stop(callback.on_step(data)):
                    stop = True
            if stop:
                logger.debug(
                    "Run stopped by callback after %d steps (%d evaluations)",
                    self._state.step_count,
                    self._state.eval_count,
                )
                return current
