"""
Adam optimizer implementation.

This module provides a minimal implementation of the Adam optimization
algorithm on NumPy arrays. The optimizer keeps first- and second-moment
estimates per parameter *position*: `Graph.optimize` always passes the
selected parameters in ascending handle order, so a position identifies the
same tensor from one step to the next.

Design notes
------------
- Optimizer state is created lazily on the first update for each position
  and is reset if the parameter shape at that position changes.
- Updates are written in place into the parameter arrays.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import numpy as np

from ._common import check_step_args


@dataclass
class Adam:
    """
    Adam optimizer.

    Update rule
    -----------
    Let ``g_t`` be the gradient at step ``t``:

        m_t = beta1 * m_{t-1} + (1 - beta1) * g_t
        v_t = beta2 * v_{t-1} + (1 - beta2) * (g_t ** 2)

        m_hat = m_t / (1 - beta1^t)
        v_hat = v_t / (1 - beta2^t)

        p <- p - lr * m_hat / (sqrt(v_hat) + eps)

    If ``weight_decay > 0`` (classical L2 regularization):

        g_t <- g_t + weight_decay * p

    Parameters
    ----------
    betas : tuple[float, float], optional
        Exponential decay rates for the first and second moments.
        Each must be in (0, 1). Defaults to (0.9, 0.999).
    eps : float, optional
        Numerical stability epsilon added to the denominator. Must be
        positive. Defaults to 1e-8.
    weight_decay : float, optional
        Classical L2 regularization coefficient (coupled). Must be
        non-negative. Defaults to 0.0.
    """

    betas: Tuple[float, float] = (0.9, 0.999)
    eps: float = 1e-8
    weight_decay: float = 0.0

    def __init__(
        self,
        *,
        betas: Tuple[float, float] = (0.9, 0.999),
        eps: float = 1e-8,
        weight_decay: float = 0.0,
    ) -> None:
        self.betas = (float(betas[0]), float(betas[1]))
        self.eps = float(eps)
        self.weight_decay = float(weight_decay)

        b1, b2 = self.betas
        if not (0.0 < b1 < 1.0) or not (0.0 < b2 < 1.0):
            raise ValueError(f"betas must be in (0,1), got {self.betas}")
        if self.eps <= 0.0:
            raise ValueError(f"eps must be > 0, got {self.eps}")
        if self.weight_decay < 0.0:
            raise ValueError(f"weight_decay must be >= 0, got {self.weight_decay}")

        # position -> {"t": int, "m": ndarray, "v": ndarray}
        self._state: Dict[int, Dict[str, object]] = {}

    def step(
        self,
        params: Sequence[np.ndarray],
        grads: Sequence[np.ndarray],
        learning_rate: float,
    ) -> None:
        """
        Apply one Adam update step to every parameter in place.

        Raises
        ------
        ValueError
            If ``learning_rate <= 0``.
        ShapeMismatchError
            If `params` and `grads` do not line up.
        """
        lr = check_step_args(params, grads, learning_rate)
        b1, b2 = self.betas

        for k, (p, g) in enumerate(zip(params, grads)):
            st = self._state.get(k)
            if st is None or st["m"].shape != p.shape:  # type: ignore[union-attr]
                st = {"t": 0, "m": np.zeros_like(p), "v": np.zeros_like(p)}
                self._state[k] = st

            st["t"] = int(st["t"]) + 1
            t = int(st["t"])
            m: np.ndarray = st["m"]  # type: ignore[assignment]
            v: np.ndarray = st["v"]  # type: ignore[assignment]

            g_eff = g + self.weight_decay * p if self.weight_decay != 0.0 else g

            m *= b1
            m += (1.0 - b1) * g_eff
            v *= b2
            v += (1.0 - b2) * (g_eff * g_eff)

            m_hat = m / (1.0 - b1**t)
            v_hat = v / (1.0 - b2**t)

            p -= lr * m_hat / (np.sqrt(v_hat) + self.eps)

