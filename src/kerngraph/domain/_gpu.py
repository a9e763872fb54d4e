"""
Device kernel value objects.

Operations that can execute on an accelerator describe each kernel launch as
a `GpuFunction`: self-contained kernel source text, its entry-point name and
the launch geometry. Backward passes that are split into several stages are
described by a `GpuFunctionGroup`, which additionally declares the auxiliary
buffers that must be allocated once and passed to every kernel of the group.

These objects are plain data. Compiling and enqueueing them is the
responsibility of a device runtime; launches within a group must be serialized
in the order they are listed, with a synchronization point between stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class GpuFunction:
    """
    A single device kernel launch.

    Attributes
    ----------
    source_code : str
        Kernel source text (OpenCL C). This is the compilation unit handed to
        the device runtime.
    kernel_name : str
        Entry-point name inside `source_code`, e.g. ``calc_7`` or ``grad_7_0``.
    local_work_size : int
        Work-group size.
    global_work_size : int
        Total number of work items; always a multiple of `local_work_size`.
        Work items beyond the real work count are masked out in the kernel.
    """

    source_code: str
    kernel_name: str
    local_work_size: int
    global_work_size: int

    def __post_init__(self) -> None:
        if self.local_work_size <= 0:
            raise ValueError(
                f"local_work_size must be > 0, got {self.local_work_size}"
            )
        if self.global_work_size % self.local_work_size != 0:
            raise ValueError(
                f"global_work_size ({self.global_work_size}) must be a multiple "
                f"of local_work_size ({self.local_work_size})"
            )


@dataclass(frozen=True)
class GpuFunctionGroup:
    """
    An ordered sequence of kernels sharing auxiliary device buffers.

    Attributes
    ----------
    funcs : tuple[GpuFunction, ...]
        Kernels in launch order.
    shared_buffers : tuple[int, ...]
        Element counts of the buffers allocated once for the whole group and
        passed to every kernel in it.
    """

    funcs: Tuple[GpuFunction, ...]
    shared_buffers: Tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "funcs", tuple(self.funcs))
        object.__setattr__(
            self, "shared_buffers", tuple(int(s) for s in self.shared_buffers)
        )

    def __len__(self) -> int:
        return len(self.funcs)

    def __iter__(self):
        return iter(self.funcs)

    @property
    def kernel_names(self) -> Tuple[str, ...]:
        return tuple(f.kernel_name for f in self.funcs)
