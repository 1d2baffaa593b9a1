from __future__ import annotations

import random
from typing import TYPE_CHECKING, Optional

import numpy as np

from . import operators
from .tensor import Tensor
from .tensor_ops import SimpleBackend, TensorBackend

if TYPE_CHECKING:
    from typing import Any, Callable, List

    from .tensor_data import UserIndex, UserShape


# Helpers for Constructing tensors
def zeros(shape: UserShape, backend: TensorBackend = SimpleBackend) -> Tensor:
    """Create a tensor filled with zeros of the specified shape.

    Args:
    ----
        shape: Shape of the tensor.
        backend: Backend to be used for the tensor (optional).

    Returns:
    -------
        Tensor: A tensor filled with zeros.

    """
    return Tensor.make(
        np.zeros(int(operators.prod(shape)), dtype=np.float64),
        tuple(shape),
        backend=backend,
    )


def rand(
    shape: UserShape,
    backend: TensorBackend = SimpleBackend,
    rng: Optional[random.Random] = None,
) -> Tensor:
    """Create a tensor filled with uniform values in [0, 1).

    Args:
    ----
        shape: Shape of the tensor.
        backend: Backend to be used for the tensor (optional).
        rng: Source of randomness, a fresh unseeded generator by default.

    Returns:
    -------
        Tensor: A tensor filled with random values.

    """
    if rng is None:
        rng = random.Random()
    vals = [rng.random() for _ in range(int(operators.prod(shape)))]
    return Tensor.make(vals, tuple(shape), backend=backend)


def tensor(ls: Any, backend: TensorBackend = SimpleBackend) -> Tensor:
    """Create a tensor with data and automatically inferred shape.

    Args:
    ----
        ls: Nested lists of floats.
        backend: Backend to be used for the tensor (optional).

    Returns:
    -------
        Tensor: A tensor with the specified data and shape.

    """

    def shape(ls: Any) -> List[int]:
        if isinstance(ls, (list, tuple)):
            return [len(ls)] + shape(ls[0])
        else:
            return []

    def flatten(ls: Any) -> List[float]:
        if isinstance(ls, (list, tuple)):
            return [y for x in ls for y in flatten(x)]
        else:
            return [ls]

    cur = flatten(ls)
    shape2 = shape(ls)
    return Tensor.make(cur, tuple(shape2), backend=backend)


# Gradient check for tensors


def central_difference(
    f: Callable[[], float], x: Tensor, ind: UserIndex, epsilon: float = 1e-6
) -> float:
    r"""Approximate the derivative of `f` with respect to one element of `x`.

    `f` is re-evaluated with `x[ind]` nudged by $\pm\epsilon$ in place, and
    `x` is restored before returning.

    Args:
    ----
        f: function of no arguments reading `x`
        x: tensor to perturb
        ind: index of the element
        epsilon: a small constant

    Returns:
    -------
        An approximation of $\partial f / \partial x_{ind}$

    """
    orig = x[ind]
    x[ind] = orig + epsilon
    up = f()
    x[ind] = orig - epsilon
    down = f()
    x[ind] = orig
    return (up - down) / (2.0 * epsilon)
