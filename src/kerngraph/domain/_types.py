"""
Shared type aliases for kerngraph.
"""

from __future__ import annotations

from typing import Any, Sequence, Tuple

TensorId = int
"""Stable integer handle identifying a tensor's value and gradient slot."""

Shape = Tuple[int, ...]

ArrayLike = Any
"""Backend-native array (a NumPy ``ndarray`` in the infrastructure layer)."""

Shapes = Sequence[Sequence[int]]
