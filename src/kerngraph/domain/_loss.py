"""
Domain-level loss contract for kerngraph.

A loss turns the graph's output tensor into a per-element loss and the
gradient of that per-element loss with respect to the output. The graph
performs the mean reduction itself when seeding backpropagation.
"""

from __future__ import annotations

from typing import Protocol, Tuple, runtime_checkable

from ._types import ArrayLike


@runtime_checkable
class ILoss(Protocol):
    """
    Loss interface contract.
    """

    def run(self, output: ArrayLike) -> Tuple[ArrayLike, ArrayLike]:
        """
        Evaluate the loss on `output`.

        Parameters
        ----------
        output : ndarray
            Current value of the graph output tensor.

        Returns
        -------
        tuple[ndarray, ndarray]
            ``(loss, grad)`` where `loss` holds one value per element and
            `grad` has the shape of `output`.

        Raises
        ------
        TensorError
            If `output` is incompatible with the loss configuration.
        """
        ...
