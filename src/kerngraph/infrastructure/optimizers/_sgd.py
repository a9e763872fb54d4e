"""
Stochastic Gradient Descent (SGD) optimizer implementation.

This module provides a minimal SGD optimizer for kerngraph. The optimizer
updates parameter arrays in place using the gradients handed over by
`Graph.optimize`, optionally applying classical L2 regularization (coupled
weight decay).

Design notes
------------
- The learning rate is supplied per step by the graph, not stored on the
  optimizer.
- Updates are written into the parameter arrays, which are the graph's own
  storage slots.
- Momentum, Nesterov and other SGD variants are intentionally omitted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ._common import check_step_args


@dataclass
class SGD:
    """
    Stochastic Gradient Descent (SGD) optimizer.

    Update rule
    -----------
    For each parameter ``p`` with gradient ``g``:

    - If ``weight_decay > 0`` (classical L2 regularization):
        ``g <- g + weight_decay * p``
    - Parameter update:
        ``p <- p - lr * g``

    Parameters
    ----------
    weight_decay : float, optional
        Classical L2 weight decay coefficient (coupled). Must be non-negative.
        Defaults to 0.0.
    """

    weight_decay: float = 0.0

    def __init__(self, *, weight_decay: float = 0.0) -> None:
        self.weight_decay = float(weight_decay)
        if self.weight_decay < 0.0:
            raise ValueError(f"weight_decay must be >= 0, got {self.weight_decay}")

    def step(
        self,
        params: Sequence[np.ndarray],
        grads: Sequence[np.ndarray],
        learning_rate: float,
    ) -> None:
        """
        Apply one SGD update step to every parameter in place.

        Raises
        ------
        ValueError
            If ``learning_rate <= 0``.
        ShapeMismatchError
            If `params` and `grads` do not line up.
        """
        lr = check_step_args(params, grads, learning_rate)

        for p, g in zip(params, grads):
            if self.weight_decay != 0.0:
                g = g + self.weight_decay * p
            p -= lr * g
