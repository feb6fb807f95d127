"""
Backend-agnostic contracts: graph, supplier, callbacks, optimisers, warnings.
"""

from ._graph import IGraph
from ._supplier import ISupplier
from ._callbacks import CallbackData, CallbackSignal, IStepCallback
from ._optimizers import IOptimiser
from ._errors import NumericDegeneracyWarning

__all__ = [
    IGraph.__name__,
    ISupplier.__name__,
    CallbackData.__name__,
    CallbackSignal.__name__,
    IStepCallback.__name__,
    IOptimiser.__name__,
    NumericDegeneracyWarning.__name__,
]
