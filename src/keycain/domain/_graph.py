"""
Computational graph contract consumed by KeyCain optimisers.

The graph itself (node construction, forward/backward evaluation, parameter
storage) lives outside this package. Optimisers only need two things from it:
how many scalar parameters it has, and a way to evaluate the summed loss and
gradient of a batch at a given parameter vector.

Notes
-----
- Domain contracts are backend-agnostic and must not depend on NumPy or
  infrastructure implementations.
- `backprop` must be deterministic for identical inputs, targets and
  parameters; reproducible optimiser trajectories depend on it.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, Tuple, runtime_checkable


@runtime_checkable
class IGraph(Protocol):
    """
    Differentiable computational graph interface.

    Required methods
    ----------------
    - `parameter_count()` returns the length of the flat parameter vector.
    - `backprop(...)` evaluates a batch and returns its *summed* loss and
      gradient.
    """

    def parameter_count(self) -> int:
        """
        Return the number of scalar parameters of the graph.

        Returns
        -------
        int
            Length of the flat parameter vector expected by `backprop`.
        """
        ...

    def backprop(
        self,
        batch_size: int,
        inputs: Any,
        targets: Any,
        params: Sequence[float],
    ) -> Tuple[float, Sequence[float], Any]:
        """
        Evaluate loss and gradient over a batch.

        Parameters
        ----------
        batch_size : int
            Number of paired samples contained in `inputs` / `targets`.
        inputs : Any
            Batch inputs as produced by an `ISupplier`.
        targets : Any
            Batch targets as produced by an `ISupplier`.
        params : Sequence[float]
            Flat parameter vector of length `parameter_count()`.

        Returns
        -------
        tuple[float, Sequence[float], Any]
            ``(loss, gradient, auxiliary)`` where `loss` and `gradient` are
            summed (not averaged) over the batch, `gradient` has the same
            length as `params`, and `auxiliary` is graph-specific data that
            optimisers ignore.
        """
        ...
