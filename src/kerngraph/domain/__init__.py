from ._errors import (
    BroadcastError,
    DeviceNotSupportedError,
    EmbeddingIndexError,
    GraphInvariantError,
    ShapeMismatchError,
    TensorError,
    TensorNotFoundError,
)
from ._function import Function, is_immutable
from ._gpu import GpuFunction, GpuFunctionGroup
from ._loss import ILoss
from ._optimizers import IOptimizer
from ._types import Shape, TensorId

__all__ = [
    "BroadcastError",
    "DeviceNotSupportedError",
    "EmbeddingIndexError",
    "Function",
    "GpuFunction",
    "GpuFunctionGroup",
    "GraphInvariantError",
    "ILoss",
    "IOptimizer",
    "Shape",
    "ShapeMismatchError",
    "TensorError",
    "TensorId",
    "TensorNotFoundError",
    "is_immutable",
]
