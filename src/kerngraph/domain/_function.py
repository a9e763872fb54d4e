"""
Operation interface definitions.

This module defines the abstract base class for differentiable operations
recorded by the computation graph. Concrete subclasses of `Function`
implement both the forward computation and its local derivative rule, and may
optionally generate device kernels for both passes.

Unlike a tape that captures intermediates per invocation, a `Function` holds
no per-call state: the graph re-invokes the same instance on every forward
replay and every backward traversal, passing the current input values each
time. Instances are parameterized only by their constructor arguments, which
is what makes replay deterministic and instances safe to share across
threads.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import fields, is_dataclass
from typing import Any, Dict, List, Sequence

from ._errors import DeviceNotSupportedError
from ._gpu import GpuFunction, GpuFunctionGroup
from ._types import ArrayLike, Shapes, TensorId


class Function(ABC):
    """
    Abstract base class for graph operations.

    Subclasses must implement `run` and `grad`. Concrete operations are
    expected to be frozen dataclasses; see `is_immutable`.

    Notes
    -----
    - `run` and `grad` are pure functions of their arguments and the
      instance's constructor parameters.
    - `grad` returns one gradient per input. Each gradient is shaped either
      exactly like its input or as a broadcast stack (extra leading
      dimensions, or expanded size-1 dimensions) which the graph reduces
      when accumulating.
    """

    @abstractmethod
    def run(self, inputs: Sequence[ArrayLike], training: bool) -> ArrayLike:
        """
        Compute the forward value.

        Parameters
        ----------
        inputs : Sequence[ndarray]
            Current values of the input tensors, in recorded order.
        training : bool
            Whether the graph is replayed in training mode.

        Returns
        -------
        ndarray
            The output value.

        Raises
        ------
        TensorError
            If the inputs are incompatible with the operation.
        """
        ...

    @abstractmethod
    def grad(
        self, inputs: Sequence[ArrayLike], output_grad: ArrayLike
    ) -> List[ArrayLike]:
        """
        Compute gradients with respect to every input.

        Parameters
        ----------
        inputs : Sequence[ndarray]
            Current values of the input tensors, in recorded order.
        output_grad : ndarray
            Fully accumulated gradient of the loss with respect to the output.

        Returns
        -------
        list[ndarray]
            Exactly one gradient per input.
        """
        ...

    def get_config(self) -> Dict[str, Any]:
        """
        Return the constructor arguments of this operation.

        Dataclass operations report every init field by default, so
        `from_config` and `clone` reproduce them without an override.
        Other subclasses with constructor arguments must override this.
        """
        if is_dataclass(self):
            return {f.name: getattr(self, f.name) for f in fields(self) if f.init}
        return {}

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "Function":
        """
        Construct an operation from a configuration dictionary.
        """
        return cls(**config)

    def clone(self) -> "Function":
        """
        Return an independent copy of this operation.

        The copy is rebuilt from `get_config()`, so it shares no mutable
        state with the original.
        """
        return type(self).from_config(self.get_config())

    @property
    def name(self) -> str:
        return type(self).__name__

    # ------------------------------------------------------------------
    # Device kernel generation
    # ------------------------------------------------------------------
    @property
    def supports_gpu(self) -> bool:
        return False

    def gpu_run(self, output_id: TensorId, input_shapes: Shapes) -> GpuFunction:
        """
        Generate the forward kernel for this operation.

        Raises
        ------
        DeviceNotSupportedError
            If the operation only has a host implementation.
        """
        raise DeviceNotSupportedError(self.name)

    def gpu_grad(
        self, output_id: TensorId, input_shapes: Shapes
    ) -> GpuFunctionGroup:
        """
        Generate the backward kernel group for this operation.

        Raises
        ------
        DeviceNotSupportedError
            If the operation only has a host implementation.
        """
        raise DeviceNotSupportedError(self.name)


def is_immutable(func: Function) -> bool:
    """
    Return True if `func` is an instance of a frozen dataclass.

    Frozen dataclass instances reject attribute assignment, which is the
    guarantee the graph relies on to share operations between replays,
    clones and threads.
    """
    if not is_dataclass(func) or isinstance(func, type):
        return False
    params = getattr(type(func), "__dataclass_params__", None)
    return bool(params is not None and params.frozen)
