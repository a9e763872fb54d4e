"""
Launch geometry helpers shared by kernel generators.
"""

from __future__ import annotations

from typing import Sequence, Tuple

LOCAL_WORK_SIZE = 32


def global_work_size(works: int, local_work_size: int = LOCAL_WORK_SIZE) -> int:
    """
    Round `works` up to the next multiple of `local_work_size`.

    Work items past `works` are launched anyway and must be masked out by a
    bounds check inside the kernel.

    Examples
    --------
    >>> global_work_size(50)
    64
    >>> global_work_size(64)
    64
    """
    if local_work_size <= 0:
        raise ValueError(f"local_work_size must be > 0, got {local_work_size}")
    return works + ((local_work_size - (works % local_work_size)) % local_work_size)


def row_geometry(shape: Sequence[int]) -> Tuple[int, int]:
    """
    Split a shape into ``(n, works)``.

    `n` is the extent of the last axis and `works` is the product of all
    other extents, i.e. the number of independent rows.
    """
    n = int(shape[-1])
    works = 1
    for d in shape[:-1]:
        works *= int(d)
    return n, works


def float_literal(value: float) -> str:
    """
    Format a Python float as an OpenCL C single-precision literal.
    """
    text = repr(float(value))
    if "." not in text and "e" not in text:
        text += ".0"
    return text + "f"
