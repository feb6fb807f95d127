"""
Per-step progress records emitted by the Cain optimiser.

Progress reporting is a side effect with no bearing on the optimisation
trajectory. Each step produces a `StepReport` and hands it to a sink chosen at
build time; the default sink writes the classic tab-separated progress table
to the module logger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

REPORT_HEADER = "count\terr\trel_err\tbatchSize\tcos_sim\trate\tmovement"


@dataclass(frozen=True)
class StepReport:
    """
    Diagnostics of one completed Cain step.

    Attributes
    ----------
    step_index : int
        Zero-based index of the step (``step_count`` before the step).
    samples_taken : int
        Supplier's running sample counter after the step.
    loss : float
        Mean sub-batch loss.
    rel_err : float
        Clamped relative gradient error that drove batch-size adaptation.
    num_subbatches : float
        Number of sub-batches drawn.
    batch_size : float
        Adapted (continuous) sub-batch size after the step.
    sim : float
        Clamped momentum similarity used for rate adaptation.
    learning_rate : float
        Learning rate after adaptation.
    movement : float
        Euclidean norm of the parameter change.
    """

    step_index: int
    samples_taken: int
    loss: float
    rel_err: float
    num_subbatches: float
    batch_size: float
    sim: float
    learning_rate: float
    movement: float

    def format_row(self) -> str:
        return (
            f"{self.samples_taken}\t{self.loss}\t{self.rel_err:.4f}\t"
            f"{int(self.num_subbatches)}x{int(self.batch_size)}\t{self.sim:.4f}\t"
            f"{self.learning_rate:.4e}\t{self.movement:.4e}"
        )


ReportSink = Callable[[StepReport], None]


def log_step_report(report: StepReport) -> None:
    """
    Default progress sink: log one table row per step at INFO level.

    The column header is logged before the first step of a run.
    """
    if report.step_index == 0:
        logger.info(REPORT_HEADER)
    logger.info(report.format_row())
