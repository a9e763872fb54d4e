"""
Device kernel planning for a recorded graph.

`compile_kernels` asks every recorded operation for its forward kernel and
its backward kernel group and arranges them in execution order:

- forward launches in ascending handle order (topological order);
- backward groups in descending handle order (reverse topological order).

Each entry also lists the buffers its kernels take, in the argument order
shared by all generators:

- forward: the output value, then every input value;
- backward: the output value and gradient, the group's shared buffers, then
  every input value followed by its gradient.

The plan is metadata only. A device runtime compiles the source text,
allocates one buffer per tensor value and gradient plus each group's shared
buffers, and enqueues kernels in plan order, synchronizing between kernels
that depend on each other's writes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

from ...domain._gpu import GpuFunction, GpuFunctionGroup
from ...domain._types import TensorId
from .._graph import Graph

logger = logging.getLogger(__name__)

KernelArg = Tuple[str, int]
"""``(kind, index)`` where kind is "value", "grad" (index is a tensor
handle) or "shared" (index into the group's shared buffers)."""


@dataclass(frozen=True)
class ForwardLaunch:
    output_id: TensorId
    input_ids: Tuple[TensorId, ...]
    kernel: GpuFunction

    @property
    def args(self) -> Tuple[KernelArg, ...]:
        return (("value", self.output_id),) + tuple(
            ("value", i) for i in self.input_ids
        )


@dataclass(frozen=True)
class BackwardLaunch:
    output_id: TensorId
    input_ids: Tuple[TensorId, ...]
    group: GpuFunctionGroup

    @property
    def args(self) -> Tuple[KernelArg, ...]:
        head: Tuple[KernelArg, ...] = (
            ("value", self.output_id),
            ("grad", self.output_id),
        )
        shared = tuple(("shared", k) for k in range(len(self.group.shared_buffers)))
        inps: Tuple[KernelArg, ...] = ()
        for i in self.input_ids:
            inps += (("value", i), ("grad", i))
        return head + shared + inps


@dataclass(frozen=True)
class KernelPlan:
    """
    Forward and backward kernel launches for a whole graph.

    Attributes
    ----------
    forward : tuple[ForwardLaunch, ...]
        Forward kernels in ascending output-handle order.
    backward : tuple[BackwardLaunch, ...]
        Backward kernel groups in descending output-handle order.
    """

    forward: Tuple[ForwardLaunch, ...]
    backward: Tuple[BackwardLaunch, ...]

    @property
    def shared_buffer_elements(self) -> int:
        return sum(sum(b.group.shared_buffers) for b in self.backward)

    def kernel_sources(self) -> Tuple[str, ...]:
        """
        Return every kernel's source text in launch order (forward first).
        """
        fwd = tuple(f.kernel.source_code for f in self.forward)
        bwd = tuple(k.source_code for b in self.backward for k in b.group.funcs)
        return fwd + bwd


def compile_kernels(graph: Graph) -> KernelPlan:
    """
    Generate the kernel plan for every recorded computation of `graph`.

    Raises
    ------
    DeviceNotSupportedError
        If a recorded operation has no kernel generators.
    """
    forward = []
    backward = []
    for out, comp in graph.computations():
        shapes = [graph.shape_of(i) for i in comp.inputs]
        forward.append(ForwardLaunch(out, comp.inputs, comp.func.gpu_run(out, shapes)))
        backward.append(
            BackwardLaunch(out, comp.inputs, comp.func.gpu_grad(out, shapes))
        )
    backward.reverse()

    plan = KernelPlan(forward=tuple(forward), backward=tuple(backward))
    logger.debug(
        "compiled %d forward kernels and %d backward groups",
        len(plan.forward),
        len(plan.backward),
    )
    return plan
