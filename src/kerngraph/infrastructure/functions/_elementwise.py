"""
Elementwise operations (CPU, NumPy).

This module contains broadcasting binary arithmetic (`Add`, `Sub`, `Mul`)
and elementwise activations (`ReLU`, `Sigmoid`, `Tanh`).

Gradient shapes
---------------
Binary operations return their input gradients at the *output* shape. When an
operand was broadcast, its gradient is therefore a broadcast stack, which the
graph reduces onto the operand's shape when accumulating (see
`TensorStore.add_grad`). Activations return gradients at the input shape.

Notes
-----
- All operations are stateless frozen dataclasses.
- Device kernel generation is not provided for these operations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from ...domain._errors import ShapeMismatchError
from ...domain._function import Function
from ._registry import register_function


def _expect_arity(name: str, inputs: Sequence[np.ndarray], n: int) -> None:
    if len(inputs) != n:
        raise ShapeMismatchError(f"{name} expects {n} inputs, got {len(inputs)}")


def _binary_operands(
    name: str, inputs: Sequence[np.ndarray]
) -> Tuple[np.ndarray, np.ndarray]:
    _expect_arity(name, inputs, 2)
    a, b = inputs
    try:
        np.broadcast_shapes(a.shape, b.shape)
    except ValueError as err:
        raise ShapeMismatchError(
            f"{name} operands are not broadcast-compatible: {a.shape} vs {b.shape}",
            expected=a.shape,
            actual=b.shape,
        ) from err
    return a, b


@register_function()
@dataclass(frozen=True)
class Add(Function):
    """
    Broadcasting addition ``out = a + b``.
    """

    def run(self, inputs: Sequence[np.ndarray], training: bool) -> np.ndarray:
        a, b = _binary_operands(self.name, inputs)
        return a + b

    def grad(
        self, inputs: Sequence[np.ndarray], output_grad: np.ndarray
    ) -> List[np.ndarray]:
        _binary_operands(self.name, inputs)
        return [output_grad, output_grad]


@register_function()
@dataclass(frozen=True)
class Sub(Function):
    """
    Broadcasting subtraction ``out = a - b``.
    """

    def run(self, inputs: Sequence[np.ndarray], training: bool) -> np.ndarray:
        a, b = _binary_operands(self.name, inputs)
        return a - b

    def grad(
        self, inputs: Sequence[np.ndarray], output_grad: np.ndarray
    ) -> List[np.ndarray]:
        _binary_operands(self.name, inputs)
        return [output_grad, -output_grad]


@register_function()
@dataclass(frozen=True)
class Mul(Function):
    """
    Broadcasting elementwise multiplication ``out = a * b``.

    Backward:

        dL/da = dL/dout * b
        dL/db = dL/dout * a
    """

    def run(self, inputs: Sequence[np.ndarray], training: bool) -> np.ndarray:
        a, b = _binary_operands(self.name, inputs)
        return a * b

    def grad(
        self, inputs: Sequence[np.ndarray], output_grad: np.ndarray
    ) -> List[np.ndarray]:
        a, b = _binary_operands(self.name, inputs)
        return [output_grad * b, output_grad * a]


@register_function()
@dataclass(frozen=True)
class ReLU(Function):
    """
    Rectified linear unit ``out = max(x, 0)``.

    The gradient at exactly zero is taken to be zero.
    """

    def run(self, inputs: Sequence[np.ndarray], training: bool) -> np.ndarray:
        _expect_arity(self.name, inputs, 1)
        return np.maximum(inputs[0], 0)

    def grad(
        self, inputs: Sequence[np.ndarray], output_grad: np.ndarray
    ) -> List[np.ndarray]:
        _expect_arity(self.name, inputs, 1)
        return [output_grad * (inputs[0] > 0)]


def _sigmoid(x: np.ndarray) -> np.ndarray:
    # tanh form avoids overflow in exp(-x) for large negative x
    return 0.5 * (1.0 + np.tanh(0.5 * x))


@register_function()
@dataclass(frozen=True)
class Sigmoid(Function):
    """
    Logistic sigmoid ``out = 1 / (1 + exp(-x))``.

    Backward:

        d(sigmoid)/dx = sigmoid(x) * (1 - sigmoid(x))
    """

    def run(self, inputs: Sequence[np.ndarray], training: bool) -> np.ndarray:
        _expect_arity(self.name, inputs, 1)
        return _sigmoid(inputs[0])

    def grad(
        self, inputs: Sequence[np.ndarray], output_grad: np.ndarray
    ) -> List[np.ndarray]:
        _expect_arity(self.name, inputs, 1)
        s = _sigmoid(inputs[0])
        return [output_grad * s * (1.0 - s)]


@register_function()
@dataclass(frozen=True)
class Tanh(Function):
    """
    Hyperbolic tangent.

    Backward:

        d(tanh)/dx = 1 - tanh(x)^2
    """

    def run(self, inputs: Sequence[np.ndarray], training: bool) -> np.ndarray:
        _expect_arity(self.name, inputs, 1)
        return np.tanh(inputs[0])

    def grad(
        self, inputs: Sequence[np.ndarray], output_grad: np.ndarray
    ) -> List[np.ndarray]:
        _expect_arity(self.name, inputs, 1)
        t = np.tanh(inputs[0])
        return [output_grad * (1.0 - t * t)]
