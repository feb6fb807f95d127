"""
Optimiser implementations.

Exports
-------
- Cain: adaptive batch-size, adaptive step-length optimiser.
- CainBuilder: immutable fluent builder producing `Cain` instances.
- CainConfig: frozen hyperparameter bundle.
- StepReport / log_step_report: per-step progress record and default sink.
- relative_error: hold-one-out relative gradient-noise estimate.
"""

from ._cain import Cain, relative_error
from ._cain_builder import CainBuilder
from ._cain_config import CainConfig
from ._cain_report import StepReport, log_step_report

__all__ = [
    Cain.__name__,
    CainBuilder.__name__,
    CainConfig.__name__,
    StepReport.__name__,
    log_step_report.__name__,
    relative_error.__name__,
]
