"""
Built-in step callbacks.

Exports
-------
- FunctionCallback: adapts a plain function to `IStepCallback`.
- StopAfterSteps / StopAfterEvaluations: run-length limits.
- LossHistory: passive per-step loss recorder.
"""

from ._callbacks import (
    FunctionCallback,
    LossHistory,
    StopAfterEvaluations,
    StopAfterSteps,
)

__all__ = [
    FunctionCallback.__name__,
    LossHistory.__name__,
    StopAfterEvaluations.__name__,
    StopAfterSteps.__name__,
]
