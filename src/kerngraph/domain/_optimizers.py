"""
Domain-level optimizer contracts for kerngraph.

This module defines the `IOptimizer` protocol, which specifies the minimal
interface the computation graph requires from an optimizer.

Notes
-----
- Domain contracts are backend-agnostic and must not depend on NumPy or
  infrastructure implementations.
- The graph selects which tensors are trainable and hands their values and
  accumulated gradients to the optimizer. The optimizer owns no references to
  graph storage between calls.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from ._types import ArrayLike


@runtime_checkable
class IOptimizer(Protocol):
    """
    Optimizer interface contract.

    Required methods
    ----------------
    - `step(params, grads, learning_rate)` updates every array in `params`
      in place using the gradient at the same position in `grads`.
    """

    def step(
        self,
        params: Sequence[ArrayLike],
        grads: Sequence[ArrayLike],
        learning_rate: float,
    ) -> None:
        """
        Apply one optimization step.

        Parameters
        ----------
        params : Sequence[ndarray]
            Parameter values, mutated in place.
        grads : Sequence[ndarray]
            Gradients matching `params` position by position.
        learning_rate : float
            Step size for this update.

        Raises
        ------
        TensorError
            If parameters and gradients do not line up.
        """
        ...
