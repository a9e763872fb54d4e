"""
Tensor storage for the computation graph.

`TensorStore` owns the value array, the gradient array and the optional
diagnostic name of every tensor allocated in a graph. Slots are addressed by
dense integer handles assigned in allocation order; a handle is never reused.

Storage semantics
-----------------
- Values handed in by callers are copied and cast to the store dtype, so the
  caller never aliases store memory.
- Slots are written in place (`numpy.copyto`), so the array object behind a
  handle stays the same for the lifetime of the store. Optimizers rely on
  this when they update parameters.
- Gradients are accumulated, never overwritten, except through `load_grad`
  and `zero_grad`.

Error handling
--------------
- Looking up a handle that was never allocated raises `TensorNotFoundError`.
  The handle space is dense, so this only happens in incorrect client code.
- Data-dependent failures (shape mismatch on load, non-reducible gradient,
  out-of-range embedding index) raise subclasses of `TensorError`.
"""

from __future__ import annotations

import logging
from typing import Any, List, Sequence, Tuple

import numpy as np

from ..domain._errors import (
    BroadcastError,
    EmbeddingIndexError,
    ShapeMismatchError,
    TensorNotFoundError,
)
from ..domain._types import Shape, TensorId

logger = logging.getLogger(__name__)


def _reduce_expanded_axes(stack: np.ndarray, shape: Shape) -> np.ndarray:
    """
    Sum the axes of a gradient stack that were expanded from size 1.

    `stack` has one leading instance axis followed by `len(shape)` axes. Any
    trailing axis whose target extent is 1 but whose stack extent is larger
    was produced by broadcasting a size-1 dimension and is summed (keeping
    the axis).
    """
    axes = tuple(
        i + 1
        for i, (want, got) in enumerate(zip(shape, stack.shape[1:]))
        if want == 1 and got != 1
    )
    if axes:
        stack = stack.sum(axis=axes, keepdims=True)
    return stack


class TensorStore:
    """
    Dense, handle-addressed storage of tensor values, gradients and names.

    Parameters
    ----------
    dtype : numpy dtype-like, default=numpy.float32
        Floating dtype of every stored value and gradient.
    """

    def __init__(self, dtype: Any = np.float32) -> None:
        self.dtype = np.dtype(dtype)
        if self.dtype.kind != "f":
            raise TypeError(f"TensorStore dtype must be floating, got {self.dtype}")

        self._values: List[np.ndarray] = []
        self._grads: List[np.ndarray] = []
        self._names: List[str] = []

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, tensor_id: object) -> bool:
        return (
            isinstance(tensor_id, (int, np.integer))
            and not isinstance(tensor_id, bool)
            and 0 <= int(tensor_id) < len(self._values)
        )

    def _check(self, tensor_id: TensorId) -> int:
        if tensor_id not in self:
            raise TensorNotFoundError(tensor_id)
        return int(tensor_id)

    def _as_array(self, value: Any) -> np.ndarray:
        return np.array(value, dtype=self.dtype, copy=True, order="C")

    # ------------------------------------------------------------------
    # Allocation and loading
    # ------------------------------------------------------------------
    def allocate(self, value: Any, name: str = "") -> TensorId:
        """
        Store a new tensor and a zero gradient of the same shape.

        Returns
        -------
        int
            The new handle. It equals the number of tensors allocated before
            this call, so it is strictly greater than every existing handle.
        """
        arr = self._as_array(value)
        self._values.append(arr)
        self._grads.append(np.zeros_like(arr))
        self._names.append(str(name))
        tensor_id = len(self._values) - 1
        logger.debug("allocated tensor %d %r with shape %s", tensor_id, name, arr.shape)
        return tensor_id

    def _write(self, dst: np.ndarray, value: Any, what: str) -> None:
        src = np.asarray(value)
        if src.shape != dst.shape:
            raise ShapeMismatchError(
                f"{what} expects shape {dst.shape}, got {src.shape}",
                expected=dst.shape,
                actual=src.shape,
            )
        np.copyto(dst, src, casting="unsafe")

    def load(self, tensor_id: TensorId, value: Any) -> None:
        """
        Overwrite a tensor's value in place.

        Raises
        ------
        ShapeMismatchError
            If `value` does not have the slot's shape.
        """
        idx = self._check(tensor_id)
        self._write(self._values[idx], value, f"load into tensor {idx}")

    def load_grad(self, tensor_id: TensorId, value: Any) -> None:
        """
        Overwrite a tensor's gradient in place.

        Raises
        ------
        ShapeMismatchError
            If `value` does not have the slot's shape.
        """
        idx = self._check(tensor_id)
        self._write(self._grads[idx], value, f"load_grad into tensor {idx}")

    def zero_grad(self) -> None:
        """
        Reset every gradient to zero.
        """
        for g in self._grads:
            g.fill(0.0)

    def add_grad(self, tensor_id: TensorId, delta: Any) -> None:
        """
        Accumulate a gradient contribution into a tensor's gradient.

        If `delta` has at least as many dimensions as the target, it is read
        as a stack of per-instance gradients: its leading dimensions are
        flattened into one instance axis, size-1 target dimensions that were
        expanded are summed, and every instance is added into the
        accumulator in order. Otherwise `delta` is broadcast onto the
        accumulator and added once.

        Raises
        ------
        BroadcastError
            If the contribution cannot be reduced onto the target shape.
        """
        idx = self._check(tensor_id)
        grad = self._grads[idx]
        shape = grad.shape
        d = np.asarray(delta, dtype=self.dtype)

        try:
            if d.ndim >= len(shape):
                split = d.ndim - len(shape)
                lead = int(np.prod(d.shape[:split], dtype=np.int64))
                stack = d.reshape((lead,) + d.shape[split:])
                stack = _reduce_expanded_axes(stack, shape)
                if np.broadcast_shapes(stack.shape[1:], shape) != shape:
                    raise BroadcastError(shape, d.shape)
                for inner in stack:
                    grad += inner
            else:
                if np.broadcast_shapes(d.shape, shape) != shape:
                    raise BroadcastError(shape, d.shape)
                grad += d
        except ValueError as err:
            if isinstance(err, BroadcastError):
                raise
            raise BroadcastError(shape, d.shape) from err

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get(self, tensor_id: TensorId) -> np.ndarray:
        return self._values[self._check(tensor_id)]

    def get_grad(self, tensor_id: TensorId) -> np.ndarray:
        return self._grads[self._check(tensor_id)]

    def name_of(self, tensor_id: TensorId) -> str:
        return self._names[self._check(tensor_id)]

    def shape_of(self, tensor_id: TensorId) -> Shape:
        return tuple(self.get(tensor_id).shape)

    def gather(self, tensor_ids: Sequence[TensorId]) -> List[np.ndarray]:
        return [self.get(i) for i in tensor_ids]

    def select(
        self, tensor_ids: Sequence[TensorId]
    ) -> Tuple[List[np.ndarray], List[np.ndarray]]:
        """
        Return ``(values, grads)`` for the given handles, position by position.
        """
        ids = [self._check(i) for i in tensor_ids]
        return [self._values[i] for i in ids], [self._grads[i] for i in ids]

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------
    def embed(self, tensor_id: TensorId, table_id: TensorId, indices: Any) -> None:
        """
        Load `tensor_id` with the rows of `table_id` selected by `indices`.

        The gathered value has shape ``indices.shape + table.shape[1:]`` and
        must match the target slot.

        Raises
        ------
        TypeError
            If `indices` is not an integer array.
        EmbeddingIndexError
            If any index is negative or not below the number of table rows.
        ShapeMismatchError
            If the gathered value does not fit the target slot.
        """
        table = self.get(table_id)
        idx = np.asarray(indices)
        if idx.dtype.kind not in ("i", "u"):
            raise TypeError(f"embed expects integer indices, got dtype {idx.dtype}")

        rows = table.shape[0] if table.ndim > 0 else 0
        bad = (idx < 0) | (idx >= rows)
        if bad.any():
            raise EmbeddingIndexError(int(idx[bad].flat[0]), rows)

        self.load(tensor_id, table[idx])

    def copy(self) -> "TensorStore":
        """
        Return a deep copy of this store.
        """
        other = TensorStore(self.dtype)
        other._values = [v.copy() for v in self._values]
        other._grads = [g.copy() for g in self._grads]
        other._names = list(self._names)
        return other
