from ._launch import LOCAL_WORK_SIZE, global_work_size, row_geometry
from ._layer_norm_kernels import layer_norm_backward_kernels, layer_norm_forward_kernel
from ._plan import BackwardLaunch, ForwardLaunch, KernelPlan, compile_kernels

__all__ = [
    "BackwardLaunch",
    "ForwardLaunch",
    "KernelPlan",
    "LOCAL_WORK_SIZE",
    "compile_kernels",
    "global_work_size",
    "layer_norm_backward_kernels",
    "layer_norm_forward_kernel",
    "row_geometry",
]
