from __future__ import annotations

from typing import Sequence

import numpy as np

from ...domain._errors import ShapeMismatchError


def check_step_args(
    params: Sequence[np.ndarray],
    grads: Sequence[np.ndarray],
    learning_rate: float,
) -> float:
    """
    Validate optimizer step arguments and return the learning rate as float.
    """
    lr = float(learning_rate)
    if lr <= 0.0:
        raise ValueError(f"learning_rate must be > 0, got {lr}")

    if len(params) != len(grads):
        raise ShapeMismatchError(
            f"optimizer received {len(params)} parameters but {len(grads)} gradients"
        )
    for k, (p, g) in enumerate(zip(params, grads)):
        if p.shape != g.shape:
            raise ShapeMismatchError(
                f"parameter {k} has shape {p.shape} but its gradient has {g.shape}",
                expected=p.shape,
                actual=g.shape,
            )
    return lr
