"""
Computation records.

A `Computation` pairs the ordered input handles of a recorded operation with
the operation instance itself. Records are keyed by their output handle in
the owning `Graph` and never change after they are created.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..domain._function import Function
from ..domain._types import TensorId


@dataclass(frozen=True)
class Computation:
    """
    An immutable (inputs, operation) record.

    Attributes
    ----------
    inputs : tuple[int, ...]
        Input handles in the order the operation receives them.
    func : Function
        The operation producing the record's output.
    """

    inputs: Tuple[TensorId, ...]
    func: Function

    def clone(self) -> "Computation":
        """
        Return a record with the same inputs and a cloned operation.
        """
        return Computation(inputs=self.inputs, func=self.func.clone())
