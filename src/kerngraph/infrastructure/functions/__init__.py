from ._elementwise import Add, Mul, ReLU, Sigmoid, Sub, Tanh
from ._layer_norm import LayerNorm
from ._matmul import MatMul
from ._registry import function_from_config, function_to_config, register_function

__all__ = [
    "Add",
    "LayerNorm",
    "MatMul",
    "Mul",
    "ReLU",
    "Sigmoid",
    "Sub",
    "Tanh",
    "function_from_config",
    "function_to_config",
    "register_function",
]
