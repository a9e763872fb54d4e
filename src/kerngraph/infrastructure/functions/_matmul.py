"""
Matrix multiplication (CPU, NumPy).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from ...domain._errors import ShapeMismatchError
from ...domain._function import Function
from ._registry import register_function


@register_function()
@dataclass(frozen=True)
class MatMul(Function):
    """
    Batched matrix product ``out = a @ b``.

    Both operands must have at least two dimensions. Leading (batch)
    dimensions broadcast following NumPy's `matmul` rules, so a single weight
    matrix ``b[k, p]`` may be applied to a batch ``a[..., m, k]``.

    Backward:

        dL/da = dL/dout @ b^T
        dL/db = a^T @ dL/dout

    When `b` was broadcast across a batch, its gradient has the batch
    dimensions in front and is reduced by the graph on accumulation.
    """

    def _operands(self, inputs: Sequence[np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
        if len(inputs) != 2:
            raise ShapeMismatchError(f"MatMul expects 2 inputs, got {len(inputs)}")
        a, b = inputs
        if a.ndim < 2 or b.ndim < 2:
            raise ShapeMismatchError(
                f"MatMul expects operands with ndim >= 2, got {a.shape} and {b.shape}"
            )
        if a.shape[-1] != b.shape[-2]:
            raise ShapeMismatchError(
                f"MatMul inner dimensions differ: {a.shape} @ {b.shape}",
                expected=(a.shape[-1],),
                actual=(b.shape[-2],),
            )
        try:
            np.broadcast_shapes(a.shape[:-2], b.shape[:-2])
        except ValueError as err:
            raise ShapeMismatchError(
                f"MatMul batch dimensions are not broadcast-compatible: "
                f"{a.shape} @ {b.shape}"
            ) from err
        return a, b

    def run(self, inputs: Sequence[np.ndarray], training: bool) -> np.ndarray:
        a, b = self._operands(inputs)
        return np.matmul(a, b)

    def grad(
        self, inputs: Sequence[np.ndarray], output_grad: np.ndarray
    ) -> List[np.ndarray]:
        a, b = self._operands(inputs)
        grad_a = np.matmul(output_grad, np.swapaxes(b, -1, -2))
        grad_b = np.matmul(np.swapaxes(a, -1, -2), output_grad)
        return [grad_a, grad_b]
