"""
Layer normalization over the last axis (CPU, NumPy) with device kernels.

Inputs are ``[x, coeff, bias]`` where `x` has shape ``(..., n)`` and the
learned scale `coeff` and shift `bias` have shape ``(n,)``:

    mean  = mean(x, axis=-1)
    var   = mean((x - mean)^2, axis=-1)          (biased)
    x_hat = (x - mean) / sqrt(var + eps)
    y     = coeff * x_hat + bias

Backward
--------
Mean and variance couple every element of a row, so each input gradient
receives a contribution from every output element in the same row. With
``g = dL/dy * coeff`` and ``sigma = sqrt(var + eps)``:

    dL/dx_i = (g_i - mean(g) - x_hat_i * mean(g * x_hat)) / sigma

which is the row-wise contraction of the pairwise Jacobian evaluated by the
device kernel. Mean and variance are recomputed from the current input rather
than cached from the forward pass.

The scale and shift gradients are returned as per-row stacks
(``dL/dy * x_hat`` and ``dL/dy``, both of shape ``x.shape``); the graph sums
them over rows when accumulating.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from ...domain._errors import ShapeMismatchError
from ...domain._function import Function
from ...domain._gpu import GpuFunction, GpuFunctionGroup
from ...domain._types import Shapes, TensorId
from ..gpu._layer_norm_kernels import (
    layer_norm_backward_kernels,
    layer_norm_forward_kernel,
)
from ._registry import register_function


@register_function()
@dataclass(frozen=True)
class LayerNorm(Function):
    """
    Layer normalization with learned per-feature scale and shift.

    Parameters
    ----------
    eps : float, default=1e-5
        Small constant added to the variance for numerical stability.
    """

    eps: float = 1e-5

    def __post_init__(self) -> None:
        eps = float(self.eps)
        if not np.isfinite(eps) or eps <= 0.0:
            raise ValueError(f"eps must be a positive finite float, got {self.eps}")
        object.__setattr__(self, "eps", eps)

    def _operands(
        self, inputs: Sequence[np.ndarray]
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        if len(inputs) != 3:
            raise ShapeMismatchError(
                f"LayerNorm expects inputs [x, coeff, bias], got {len(inputs)} inputs"
            )
        x, coeff, bias = inputs
        if x.ndim < 1:
            raise ShapeMismatchError("LayerNorm expects input rank >= 1, got a scalar")

        n = x.shape[-1]
        for label, p in (("coeff", coeff), ("bias", bias)):
            if p.shape != (n,):
                raise ShapeMismatchError(
                    f"LayerNorm {label} must have shape {(n,)}, got {p.shape}",
                    expected=(n,),
                    actual=p.shape,
                )
        return x, coeff, bias

    def _normalize(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        mean = x.mean(axis=-1, keepdims=True)
        centered = x - mean
        var = (centered * centered).mean(axis=-1, keepdims=True)
        inv_std = 1.0 / np.sqrt(var + self.eps)
        return centered * inv_std, inv_std

    def run(self, inputs: Sequence[np.ndarray], training: bool) -> np.ndarray:
        x, coeff, bias = self._operands(inputs)
        x_hat, _ = self._normalize(x)
        return x_hat * coeff + bias

    def grad(
        self, inputs: Sequence[np.ndarray], output_grad: np.ndarray
    ) -> List[np.ndarray]:
        x, coeff, _ = self._operands(inputs)
        x_hat, inv_std = self._normalize(x)

        g = output_grad * coeff
        mean_g = g.mean(axis=-1, keepdims=True)
        mean_gx = (g * x_hat).mean(axis=-1, keepdims=True)
        grad_x = (g - mean_g - x_hat * mean_gx) * inv_std

        return [grad_x, output_grad * x_hat, output_grad]

    def get_config(self) -> Dict[str, Any]:
        return {"eps": self.eps}

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "LayerNorm":
        return cls(eps=float(config.get("eps", 1e-5)))

    @property
    def supports_gpu(self) -> bool:
        return True

    def gpu_run(self, output_id: TensorId, input_shapes: Shapes) -> GpuFunction:
        return layer_norm_forward_kernel(output_id, input_shapes, eps=self.eps)

    def gpu_grad(
        self, output_id: TensorId, input_shapes: Shapes
    ) -> GpuFunctionGroup:
        return layer_norm_backward_kernels(output_id, input_shapes, eps=self.eps)
