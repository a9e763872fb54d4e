"""
Error taxonomy for kerngraph.

Two classes of failure are distinguished:

Recoverable (data-dependent) errors
-----------------------------------
Subclasses of `TensorError`. They are raised by the component that detects
the problem (tensor store, operation, loss, optimizer) and propagate unchanged
through `Graph.call`, `Graph.forward`, `Graph.backward_all`, `Graph.embed` and
`Graph.optimize`. The caller decides whether to abort or skip a training step.

Programmer errors
-----------------
`TensorNotFoundError` and `GraphInvariantError` signal misuse of the handle
space or a broken operation contract. They deliberately do NOT derive from
`TensorError`, so recovery code written as ``except TensorError`` never
masks them.
"""

from __future__ import annotations

from typing import Optional, Sequence


class TensorError(RuntimeError):
    """
    Base class for recoverable, data-dependent tensor failures.
    """


class ShapeMismatchError(TensorError, ValueError):
    """
    Raised when a tensor does not have the shape an operation requires.

    Attributes
    ----------
    expected : tuple[int, ...] | None
        The shape that was required, when a single shape is meaningful.
    actual : tuple[int, ...] | None
        The shape that was provided.
    """

    def __init__(
        self,
        message: str,
        *,
        expected: Optional[Sequence[int]] = None,
        actual: Optional[Sequence[int]] = None,
    ) -> None:
        super().__init__(message)
        self.expected = tuple(expected) if expected is not None else None
        self.actual = tuple(actual) if actual is not None else None


class BroadcastError(TensorError, ValueError):
    """
    Raised when a gradient contribution cannot be accumulated into a slot.

    Attributes
    ----------
    target : tuple[int, ...]
        Shape of the gradient accumulator.
    delta : tuple[int, ...]
        Shape of the rejected contribution.
    """

    def __init__(self, target: Sequence[int], delta: Sequence[int]) -> None:
        super().__init__(
            f"Cannot accumulate gradient of shape {tuple(delta)} "
            f"into accumulator of shape {tuple(target)}."
        )
        self.target = tuple(target)
        self.delta = tuple(delta)


class EmbeddingIndexError(TensorError, IndexError):
    """
    Raised when an embedding lookup index falls outside the lookup table.

    Attributes
    ----------
    index : int
        The offending index.
    table_size : int
        Number of rows available in the lookup table.
    """

    def __init__(self, index: int, table_size: int) -> None:
        super().__init__(
            f"Embedding index {index} out of range for table with "
            f"{table_size} rows."
        )
        self.index = int(index)
        self.table_size = int(table_size)


class DeviceNotSupportedError(TensorError):
    """
    Raised when an operation is asked to generate device kernels but only
    provides a host implementation.

    Attributes
    ----------
    op : str
        The name of the operation (e.g., "MatMul").
    device : str
        The device backend that was requested.
    """

    def __init__(self, op: str, device: str = "gpu") -> None:
        super().__init__(f"{op} is not implemented for device '{device}'.")
        self.op = op
        self.device = device


class TensorNotFoundError(LookupError):
    """
    Raised when a tensor handle that was never allocated is looked up.

    Handles are dense and monotonically assigned, so this can only happen in
    incorrect client code. It is not part of the recoverable taxonomy.
    """

    def __init__(self, tensor_id: int) -> None:
        super().__init__(f"Tensor not found: {tensor_id}")
        self.tensor_id = tensor_id


class GraphInvariantError(AssertionError):
    """
    Raised when an internal graph invariant is violated, for example when an
    operation returns a different number of gradients than it has inputs.
    """
