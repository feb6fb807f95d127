"""
Fluent construction of `Cain` optimisers.

Every `with_*` method returns a *new* builder with exactly one setting
changed, so partially configured builders can be shared and branched freely:

    opt = (
        Cain.builder()
        .with_num_subbatches(4)
        .with_momentum(0.95)
        .with_initial_learning_rate(1e-3)
        .finish(graph)
    )

`finish(graph)` reads the graph's parameter count once and allocates the
optimiser state; the graph itself is not retained.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from ...domain._graph import IGraph
from ._cain import Cain
from ._cain_config import CainConfig
from ._cain_report import ReportSink, log_step_report
from ._cain_state import CainState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CainBuilder:
    """
    Immutable builder for `Cain`.

    Attributes
    ----------
    config : CainConfig
        Hyperparameters accumulated so far.
    initial_learning_rate : float
        Learning rate of the first step. Defaults to 1e-4.
    initial_subbatch_size : float
        Continuous sub-batch size of the first step. Defaults to 2.0.
    progress_sink : Optional[ReportSink]
        Receiver of per-step `StepReport`s. Defaults to `log_step_report`;
        None disables reporting.

    Notes
    -----
    Hyperparameters are not validated; only `num_subbatches` is clamped to
    at least 2.
    """

    config: CainConfig = field(default_factory=CainConfig)
    initial_learning_rate: float = 1e-4
    initial_subbatch_size: float = 2.0
    progress_sink: Optional[ReportSink] = log_step_report

    def _with_config(self, **changes) -> "CainBuilder":
        return replace(self, config=replace(self.config, **changes))

    def with_num_subbatches(self, val: int) -> "CainBuilder":
        """Set the number of sub-batches per step (clamped to >= 2)."""
        return self._with_config(num_subbatches=float(val))

    def with_momentum(self, val: float) -> "CainBuilder":
        return self._with_config(momentum=float(val))

    def with_aggression(self, val: float) -> "CainBuilder":
        return self._with_config(aggression=float(val))

    def with_target_err(self, val: float) -> "CainBuilder":
        """Set the target relative standard error of the mean gradient."""
        return self._with_config(target_err=float(val))

    def with_subbatch_increase_damping(self, val: float) -> "CainBuilder":
        return self._with_config(subbatch_increase_damping=float(val))

    def with_subbatch_decrease_damping(self, val: float) -> "CainBuilder":
        return self._with_config(subbatch_decrease_damping=float(val))

    def with_rate_adapt_coefficient(self, val: float) -> "CainBuilder":
        return self._with_config(rate_adapt_coefficient=float(val))

    def with_max_eval_batch_size(self, val: int) -> "CainBuilder":
        return self._with_config(max_eval_batch_size=int(val))

    def with_min_subbatch_size(self, val: int) -> "CainBuilder":
        """
        Set the minimum sub-batch size.

        The initial sub-batch size is raised to the new minimum if it would
        otherwise fall below it.
        """
        val = int(val)
        builder = self._with_config(min_subbatch_size=val)
        if val > builder.initial_subbatch_size:
            builder = replace(builder, initial_subbatch_size=float(val))
        return builder

    def with_initial_learning_rate(self, val: float) -> "CainBuilder":
        return replace(self, initial_learning_rate=float(val))

    def with_initial_subbatch_size(self, val: float) -> "CainBuilder":
        return replace(self, initial_subbatch_size=float(val))

    def with_progress_sink(self, sink: Optional[ReportSink]) -> "CainBuilder":
        return replace(self, progress_sink=sink)

    def finish(self, graph: IGraph) -> Cain:
        """
        Build a `Cain` optimiser sized for `graph`.

        Parameters
        ----------
        graph : IGraph
            Graph whose current `parameter_count()` determines the length of
            the optimiser's state vectors.

        Returns
        -------
        Cain
            A fresh optimiser with zero-filled momentum, curvature and
            previous-gradient vectors.
        """
        num_params = int(graph.parameter_count())
        state = CainState.zeros(
            num_params,
            learning_rate=self.initial_learning_rate,
            batch_size=self.initial_subbatch_size,
        )
        logger.debug(
            "Built Cain optimiser for %d parameters with %s", num_params, self.config
        )
        return Cain(self.config, state, progress_sink=self.progress_sink)
