"""
OpenCL kernel generators for layer normalization.

Both generators are pure functions of the output handle and the static input
shapes ``[x, coeff, bias]``. The last axis of `x` (extent `n`) is normalized;
every other axis is flattened into `works` independent rows, one work item
per row.

Forward
-------
``calc_<id>(out, a, coeff, bias)``: per row, mean, biased variance,
normalization, then per-feature scale and shift.

Backward
--------
Two stages sharing one auxiliary buffer of ``n * works`` elements. Both
kernels take the same arguments: the output and its gradient, the shared
buffer, then every input followed by its gradient.

- ``grad_<id>_0`` (one work item per row) recomputes mean and variance from
  the input, stores ``x_hat * out_grad`` per element into the shared buffer
  and accumulates the full in-row Jacobian into ``inp_grad``.
- ``grad_<id>_1`` (one work item per feature) reduces the shared buffer and
  ``out_grad`` over all rows into ``coeff_grad`` and ``bias_grad``.

Stage 1 reads what stage 0 wrote, so the runtime must finish stage 0 before
launching stage 1.
"""

from __future__ import annotations

from ...domain._gpu import GpuFunction, GpuFunctionGroup
from ...domain._types import Shapes, TensorId
from ._launch import LOCAL_WORK_SIZE, float_literal, global_work_size, row_geometry

_GRAD_PARAMS = """__global float* out,
        __global float* out_grad,
        __global float* coeff_grad_temp,
        __global float* inp,
        __global float* inp_grad,
        __global float* coeff,
        __global float* coeff_grad,
        __global float* bias,
        __global float* bias_grad"""


def layer_norm_forward_kernel(
    output_id: TensorId, input_shapes: Shapes, eps: float = 1e-5
) -> GpuFunction:
    """
    Generate the forward layer-normalization kernel.

    Parameters
    ----------
    output_id : int
        Handle of the output tensor; used to name the kernel ``calc_<id>``.
    input_shapes : Sequence[Sequence[int]]
        Shapes of ``[x, coeff, bias]``. Only the shape of `x` is read.
    eps : float, default=1e-5
        Variance stabilizer.

    Returns
    -------
    GpuFunction
        Kernel with local size 32 and one (masked) work item per row.
    """
    n, works = row_geometry(input_shapes[0])
    kernel_name = f"calc_{output_id}"
    eps_lit = float_literal(eps)

    source_code = f"""__kernel void {kernel_name}(
        __global float* out,
        __global float* a,
        __global float* coeff,
        __global float* bias) {{
    uint id = get_global_id(0);
    if(id < {works}) {{
        a += id * {n};
        out += id * {n};
        float size_inv = 1.0f / {n};
        float avg = 0.0f;
        for(uint i = 0; i < {n}; i++) {{
            avg += a[i];
        }}
        avg *= size_inv;
        float var = 0.0f;
        for(uint i = 0; i < {n}; i++) {{
            var += (a[i] - avg) * (a[i] - avg);
        }}
        float var_inv = 1.0f / sqrt(var * size_inv + {eps_lit});
        for(uint i = 0; i < {n}; i++) {{
            out[i] = (a[i] - avg) * var_inv * coeff[i] + bias[i];
        }}
    }}
}}
"""

    return GpuFunction(
        source_code=source_code,
        kernel_name=kernel_name,
        local_work_size=LOCAL_WORK_SIZE,
        global_work_size=global_work_size(works),
    )


def layer_norm_backward_kernels(
    output_id: TensorId, input_shapes: Shapes, eps: float = 1e-5
) -> GpuFunctionGroup:
    """
    Generate the two-stage backward layer-normalization kernel group.

    Parameters
    ----------
    output_id : int
        Handle of the output tensor; kernels are named ``grad_<id>_0`` and
        ``grad_<id>_1``.
    input_shapes : Sequence[Sequence[int]]
        Shapes of ``[x, coeff, bias]``. Only the shape of `x` is read.
    eps : float, default=1e-5
        Variance stabilizer; must match the forward pass.

    Returns
    -------
    GpuFunctionGroup
        The per-row stage followed by the per-feature reduction stage, with
        one shared buffer of ``n * works`` elements.
    """
    n, works = row_geometry(input_shapes[0])
    row_name = f"grad_{output_id}_0"
    reduce_name = f"grad_{output_id}_1"
    eps_lit = float_literal(eps)

    row_source = f"""__kernel void {row_name}(
        {_GRAD_PARAMS}) {{
    uint id = get_global_id(0);
    if(id < {works}) {{
        out_grad += id * {n};
        inp += id * {n};
        inp_grad += id * {n};
        coeff_grad_temp += id * {n};

        float n_inv = 1.0f / {n};
        float avg = 0.0f;
        for(uint i = 0; i < {n}; i++) {{
            avg += inp[i];
        }}
        avg *= n_inv;

        float sigma2 = 0.0f;
        for(uint i = 0; i < {n}; i++) {{
            sigma2 += (inp[i] - avg) * (inp[i] - avg);
        }}
        sigma2 = sigma2 * n_inv + {eps_lit};

        float sigma2_inv = 1.0f / sigma2;
        float sigma = sqrt(sigma2);
        float sigma_inv = 1.0f / sigma;

        for(uint i = 0; i < {n}; i++) {{
            coeff_grad_temp[i] = (inp[i] - avg) * sigma_inv * out_grad[i];
        }}

        for(uint i = 0; i < {n}; i++) {{
            float a = inp[i];
            for(uint j = 0; j < {n}; j++) {{
                if(i == j) {{
                    inp_grad[i] += ((1.0f - n_inv) * sigma - (a - avg) * (a - avg) * sigma_inv * n_inv) * sigma2_inv * out_grad[j] * coeff[j];
                }} else {{
                    float b = inp[j];
                    inp_grad[i] += (-n_inv * sigma - (b - avg) * (a - avg) * sigma_inv * n_inv) * sigma2_inv * out_grad[j] * coeff[j];
                }}
            }}
        }}
    }}
}}
"""

    reduce_source = f"""__kernel void {reduce_name}(
        {_GRAD_PARAMS}) {{
    uint id = get_global_id(0);
    if(id < {n}) {{
        for(uint i = 0; i < {works}; i++) {{
            coeff_grad[id] += coeff_grad_temp[i * {n} + id];
            bias_grad[id] += out_grad[i * {n} + id];
        }}
    }}
}}
"""

    return GpuFunctionGroup(
        funcs=(
            GpuFunction(
                source_code=row_source,
                kernel_name=row_name,
                local_work_size=LOCAL_WORK_SIZE,
                global_work_size=global_work_size(works),
            ),
            GpuFunction(
                source_code=reduce_source,
                kernel_name=reduce_name,
                local_work_size=LOCAL_WORK_SIZE,
                global_work_size=global_work_size(n),
            ),
        ),
        shared_buffers=(n * works,),
    )
