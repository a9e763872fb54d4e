"""
kerngraph: a static computation graph with reverse-mode autodiff and
per-operation device kernel generation.
"""

from .domain import (
    BroadcastError,
    DeviceNotSupportedError,
    EmbeddingIndexError,
    Function,
    GpuFunction,
    GpuFunctionGroup,
    GraphInvariantError,
    ILoss,
    IOptimizer,
    ShapeMismatchError,
    TensorError,
    TensorNotFoundError,
)
from .infrastructure import Computation, Graph, TensorStore
from .infrastructure.functions import (
    Add,
    LayerNorm,
    MatMul,
    Mul,
    ReLU,
    Sigmoid,
    Sub,
    Tanh,
    register_function,
)
from .infrastructure.gpu import KernelPlan, compile_kernels, global_work_size
from .infrastructure.losses import BinaryCrossEntropy, MeanSquaredError
from .infrastructure.optimizers import SGD, Adam

__version__ = "0.1.0"

__all__ = [
    "Adam",
    "Add",
    "BinaryCrossEntropy",
    "BroadcastError",
    "Computation",
    "DeviceNotSupportedError",
    "EmbeddingIndexError",
    "Function",
    "GpuFunction",
    "GpuFunctionGroup",
    "Graph",
    "GraphInvariantError",
    "ILoss",
    "IOptimizer",
    "KernelPlan",
    "LayerNorm",
    "MatMul",
    "MeanSquaredError",
    "Mul",
    "ReLU",
    "SGD",
    "ShapeMismatchError",
    "Sigmoid",
    "Sub",
    "Tanh",
    "TensorError",
    "TensorNotFoundError",
    "TensorStore",
    "compile_kernels",
    "global_work_size",
    "register_function",
]
