"""
Domain-level optimiser contracts for KeyCain.

This module defines the `IOptimiser` protocol, which specifies the minimal
interface shared by optimiser implementations that drive an external graph
with samples drawn from an external supplier.

Notes
-----
- Domain contracts are backend-agnostic and must not depend on NumPy or
  infrastructure implementations.
- The graph and supplier are passed into every call rather than stored, so
  callers keep ownership of both between steps.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, Tuple, runtime_checkable

from ._graph import IGraph
from ._supplier import ISupplier


@runtime_checkable
class IOptimiser(Protocol):
    """
    Optimiser interface contract.

    Required methods
    ----------------
    - `step(...)` performs one optimisation step and returns the new
      parameter vector.
    - `optimise_from(...)` repeats steps until a callback stops the run.
    - `add_step_callback(...)` registers a callback for the run loop.
    """

    def step(
        self, graph: IGraph, supplier: ISupplier, params: Sequence[float]
    ) -> Tuple[float, Sequence[float]]:
        """
        Apply one optimisation step.

        Returns
        -------
        tuple[float, Sequence[float]]
            ``(loss, new_params)``. The input vector is not modified.
        """
        ...

    def optimise_from(
        self, graph: IGraph, supplier: ISupplier, params: Sequence[float]
    ) -> Sequence[float]:
        """
        Run steps until a registered callback requests a stop.
        """
        ...

    def add_step_callback(self, callback: Any) -> None:
        """
        Register a callback invoked after every step of `optimise_from`.
        """
        ...
