"""
Static computation graph with eager recording and reverse-mode replay.

Client code allocates leaf tensors and applies operations through
`Graph.call`, which evaluates the operation immediately and records it. The
recorded graph is then reused for many training steps:

    graph.load(x_id, batch)          # feed new leaf data
    graph.forward(training=True)     # replay every record
    graph.backward_all(y_id, loss)   # seed and propagate gradients
    graph.optimize(opt, params, lr)  # update trainable leaves
    graph.zero_grad()

Ordering invariant
------------------
Handles are assigned in allocation order and `call` is the only way to create
a computation record. A record's output is allocated after its inputs exist,
so every input handle is strictly smaller than the output handle. Ascending
handle order is therefore a topological order of the graph and descending
order is a reverse topological order. Replay and backpropagation iterate over
explicitly sorted handles rather than relying on mapping insertion order.
"""

from __future__ import annotations

import logging
import math
import warnings
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from ..domain._errors import GraphInvariantError
from ..domain._function import Function, is_immutable
from ..domain._loss import ILoss
from ..domain._optimizers import IOptimizer
from ..domain._types import Shape, TensorId
from ._computation import Computation
from ._tensor_store import TensorStore

logger = logging.getLogger(__name__)


class Graph:
    """
    Computation graph over a `TensorStore`.

    Parameters
    ----------
    dtype : numpy dtype-like, default=numpy.float32
        Floating dtype used for every value and gradient in the graph.
    """

    def __init__(self, dtype: Any = np.float32) -> None:
        self._store = TensorStore(dtype)
        self._computations: Dict[TensorId, Computation] = {}

    @property
    def dtype(self) -> np.dtype:
        return self._store.dtype

    def __len__(self) -> int:
        return len(self._store)

    # ------------------------------------------------------------------
    # Tensor store facade
    # ------------------------------------------------------------------
    def allocate(self, value: Any, name: str = "") -> TensorId:
        """
        Allocate a leaf tensor holding a copy of `value`.
        """
        return self._store.allocate(value, name)

    def alloc_rand(
        self,
        shape: Sequence[int],
        name: str = "",
        rng: Optional[np.random.Generator] = None,
    ) -> TensorId:
        """
        Allocate a leaf tensor with values drawn uniformly from [-1, 1).
        """
        rng = rng if rng is not None else np.random.default_rng()
        return self.allocate(rng.uniform(-1.0, 1.0, size=tuple(shape)), name)

    def load(self, tensor_id: TensorId, value: Any) -> None:
        self._store.load(tensor_id, value)

    def load_grad(self, tensor_id: TensorId, value: Any) -> None:
        self._store.load_grad(tensor_id, value)

    def zero_grad(self) -> None:
        self._store.zero_grad()

    def add_grad(self, tensor_id: TensorId, delta: Any) -> None:
        self._store.add_grad(tensor_id, delta)

    def get(self, tensor_id: TensorId) -> np.ndarray:
        return self._store.get(tensor_id)

    def get_grad(self, tensor_id: TensorId) -> np.ndarray:
        return self._store.get_grad(tensor_id)

    def name_of(self, tensor_id: TensorId) -> str:
        return self._store.name_of(tensor_id)

    def shape_of(self, tensor_id: TensorId) -> Shape:
        return self._store.shape_of(tensor_id)

    def embed(self, tensor_id: TensorId, table_id: TensorId, indices: Any) -> None:
        """
        Load `tensor_id` with the rows of lookup table `table_id` at `indices`.
        """
        self._store.embed(tensor_id, table_id, indices)

    # ------------------------------------------------------------------
    # Recording and replay
    # ------------------------------------------------------------------
    def call(self, func: Function, tensor_ids: Sequence[TensorId]) -> TensorId:
        """
        Evaluate `func` on the given tensors and record it.

        Parameters
        ----------
        func : Function
            Operation to apply. Must be an immutable (frozen dataclass)
            `Function` so it can be replayed and shared safely.
        tensor_ids : Sequence[int]
            Input handles in the order `func` expects them.

        Returns
        -------
        int
            Handle of the newly allocated output tensor.

        Raises
        ------
        TypeError
            If `func` is not an immutable `Function`.
        TensorNotFoundError
            If an input handle was never allocated.
        TensorError
            Propagated unchanged from `func.run`.
        """
        if not isinstance(func, Function):
            raise TypeError(f"call expects a Function, got {type(func).__name__}")
        if not is_immutable(func):
            raise TypeError(
                f"{type(func).__name__} must be a frozen dataclass to be "
                f"recorded in a Graph."
            )

        inps = tuple(int(i) for i in tensor_ids)
        out = func.run(self._store.gather(inps), False)
        child = self._store.allocate(out)

        if any(i >= child for i in inps):
            raise GraphInvariantError(
                f"input handles {inps} must precede output handle {child}"
            )

        self._computations[child] = Computation(inputs=inps, func=func)
        logger.debug("recorded %s: %s -> %d", func.name, inps, child)
        return child

    def computations(self) -> Iterator[Tuple[TensorId, Computation]]:
        """
        Iterate over ``(output_id, record)`` pairs in ascending handle order.
        """
        for out in sorted(self._computations):
            yield out, self._computations[out]

    def is_leaf(self, tensor_id: TensorId) -> bool:
        self._store.get(tensor_id)
        return tensor_id not in self._computations

    def forward(self, training: bool = False) -> None:
        """
        Recompute every recorded output from its current inputs.

        Records are replayed in ascending handle order. Must be called after
        leaf values change (e.g. after `load`).

        Parameters
        ----------
        training : bool, default=False
            Forwarded to every operation's `run`.
        """
        for out, comp in self.computations():
            result = comp.func.run(self._store.gather(comp.inputs), training)
            self._store.load(out, result)
        logger.debug(
            "forward replayed %d computations (training=%s)",
            len(self._computations),
            training,
        )

    def backward_all(
        self,
        tensor_id: TensorId,
        loss: ILoss,
        limit: Optional[int] = None,
    ) -> float:
        """
        Seed the gradient of `tensor_id` from `loss` and propagate it.

        The output gradient is seeded with the loss gradient scaled by
        ``1 / loss.size`` (mean reduction). Records are then visited in
        descending handle order, so every consumer of a tensor has added its
        contribution before that tensor's producer reads its gradient.

        Parameters
        ----------
        tensor_id : int
            Output tensor the loss is evaluated on.
        loss : ILoss
            Loss collaborator.
        limit : int, optional
            If given, only the `limit` most recent records are visited.

        Returns
        -------
        float
            The mean loss, or NaN when the output has no elements.

        Raises
        ------
        ValueError
            If `limit` is negative.
        TensorError
            Propagated unchanged from the loss, the operations or `add_grad`.
        """
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")

        loss_value, grad = loss.run(self.get(tensor_id))
        loss_value = np.asarray(loss_value)
        # An empty output has nothing to seed; its mean loss is NaN.
        if loss_value.size:
            mean_coeff = 1.0 / loss_value.size
            self._store.add_grad(tensor_id, np.asarray(grad) * mean_coeff)

        # Snapshot the records so the walk is independent of store mutation.
        records: List[Tuple[TensorId, Computation]] = list(self.computations())
        records.reverse()
        if limit is not None:
            records = records[:limit]

        for out, comp in records:
            inps = self._store.gather(comp.inputs)
            grads = comp.func.grad(inps, self._store.get_grad(out))
            if len(grads) != len(comp.inputs):
                raise GraphInvariantError(
                    f"{comp.func.name} returned {len(grads)} gradients for "
                    f"{len(comp.inputs)} inputs"
                )
            for inp_id, g in zip(comp.inputs, grads):
                self._store.add_grad(inp_id, g)

        mean_loss = float(loss_value.mean()) if loss_value.size else math.nan
        if not math.isfinite(mean_loss):
            warnings.warn(
                f"backward_all observed a non-finite mean loss ({mean_loss}).",
                RuntimeWarning,
                stacklevel=2,
            )
        logger.debug(
            "backward visited %d computations, mean loss %s", len(records), mean_loss
        )
        return mean_loss

    def optimize(
        self,
        optimizer: IOptimizer,
        params: Iterable[TensorId],
        learning_rate: float,
    ) -> None:
        """
        Apply `optimizer` to the selected tensors using their gradients.

        Values are passed in ascending handle order and updated in place.

        Raises
        ------
        TensorNotFoundError
            If a selected handle was never allocated.
        TensorError
            Propagated unchanged from the optimizer.
        """
        ids = sorted(set(params))
        values, grads = self._store.select(ids)

        derived = [i for i in ids if i in self._computations]
        if derived:
            warnings.warn(
                f"optimize updates computed tensors {derived}; their values are "
                f"overwritten by the next forward().",
                RuntimeWarning,
                stacklevel=2,
            )

        optimizer.step(values, grads, float(learning_rate))

    def copy(self) -> "Graph":
        """
        Return an independent deep copy of the graph.
        """
        other = Graph.__new__(Graph)
        other._store = self._store.copy()
        other._computations = {
            out: comp.clone() for out, comp in self._computations.items()
        }
        return other
