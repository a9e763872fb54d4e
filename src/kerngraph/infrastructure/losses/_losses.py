"""
Loss collaborators for `Graph.backward_all`.

Each loss is configured with its target at construction time and evaluated on
the graph output through `run(output) -> (loss, grad)`:

- `loss` holds one value per element (no reduction);
- `grad` is the derivative of each per-element loss with respect to the
  corresponding output element.

The graph applies the mean reduction itself by scaling `grad` with
``1 / loss.size`` before propagating it.

Currently implemented losses:
- MeanSquaredError   : squared error against a regression target
- BinaryCrossEntropy : cross entropy of probabilities against binary targets
"""

from __future__ import annotations

from typing import Any, Tuple

import numpy as np

from ...domain._errors import ShapeMismatchError


def _check_target(name: str, output: np.ndarray, target: np.ndarray) -> None:
    if output.shape != target.shape:
        raise ShapeMismatchError(
            f"{name} expects output shape {target.shape}, got {output.shape}",
            expected=target.shape,
            actual=output.shape,
        )


class MeanSquaredError:
    """
    Squared error loss.

    Per element:

        loss = (y - t)^2
        grad = 2 * (y - t)

    Parameters
    ----------
    target : array-like
        Ground-truth values with the shape of the graph output.
    """

    def __init__(self, target: Any) -> None:
        self.target = np.asarray(target)

    def run(self, output: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        _check_target(type(self).__name__, output, self.target)
        diff = output - self.target
        return diff * diff, 2.0 * diff


class BinaryCrossEntropy:
    """
    Binary cross entropy on probability outputs.

    Per element, with ``p`` clipped to ``[eps, 1 - eps]``:

        loss = -(t * log(p) + (1 - t) * log(1 - p))
        grad = (p - t) / (p * (1 - p))

    Parameters
    ----------
    target : array-like
        Binary targets (0 or 1) with the shape of the graph output.
    eps : float, default=1e-7
        Clipping bound keeping the logarithms finite.

    Notes
    -----
    Outputs are expected to be probabilities (e.g. produced by `Sigmoid`).
    """

    def __init__(self, target: Any, *, eps: float = 1e-7) -> None:
        self.target = np.asarray(target)
        self.eps = float(eps)
        if not (0.0 < self.eps < 0.5):
            raise ValueError(f"eps must be in (0, 0.5), got {self.eps}")

    def run(self, output: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        _check_target(type(self).__name__, output, self.target)
        p = np.clip(output, self.eps, 1.0 - self.eps)
        t = self.target
        loss = -(t * np.log(p) + (1.0 - t) * np.log(1.0 - p))
        grad = (p - t) / (p * (1.0 - p))
        return loss, grad
