"""
KeyCain: the Cain adaptive batch-size optimiser for externally supplied graphs.

Public API
----------
- Cain, CainBuilder, CainConfig, StepReport
- CallbackSignal, CallbackData
- StopAfterSteps, StopAfterEvaluations, LossHistory
- NumericDegeneracyWarning
"""

import logging

from .domain import (
    CallbackData,
    CallbackSignal,
    IGraph,
    IOptimiser,
    IStepCallback,
    ISupplier,
    NumericDegeneracyWarning,
)
from .infrastructure.callbacks import (
    FunctionCallback,
    LossHistory,
    StopAfterEvaluations,
    StopAfterSteps,
)
from .infrastructure.optimizers import Cain, CainBuilder, CainConfig, StepReport

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "Cain",
    "CainBuilder",
    "CainConfig",
    "StepReport",
    "CallbackData",
    "CallbackSignal",
    "IGraph",
    "IOptimiser",
    "IStepCallback",
    "ISupplier",
    "FunctionCallback",
    "LossHistory",
    "StopAfterEvaluations",
    "StopAfterSteps",
    "NumericDegeneracyWarning",
]
