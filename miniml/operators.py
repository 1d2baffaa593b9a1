"""Collection of the scalar operators used by the kernels and the losses."""

import math

from typing import Iterable


def add(x: float, y: float) -> float:
    """Adds two numbers and returns their sum.

    Args:
    ----
        x (float): The first number.
        y (float): The second number.

    Returns:
    -------
        float: The sum of x and y.

    """
    return x + y


def relu(x: float) -> float:
    """Applies the ReLU (Rectified Linear Unit) function.

    Args:
    ----
        x (float): The input number.

    Returns:
    -------
        float: x if x is greater than 0, otherwise 0.

    """
    if x > 0:
        return x
    return 0.0


def relu_back(x: float, y: float) -> float:
    """Computes the backward gradient of the ReLU function.

    Args:
    ----
        x (float): The output of the forward ReLU.
        y (float): The gradient with respect to the output.

    Returns:
    -------
        float: y if x is greater than 0, otherwise 0.

    """
    if x > 0:
        return y
    else:
        return 0.0


def log(x: float) -> float:
    """Computes the natural logarithm of the input number. `log(0)` is `-inf`."""
    if x == 0.0:
        return float("-inf")
    return math.log(x)


def inv(x: float) -> float:
    """Computes the multiplicative inverse of the input number."""
    return 1.0 / x


def prod(li: Iterable[float]) -> float:
    """Calculates the product of all elements in an Iterable of floats.

    Args:
    ----
        li (Iterable[float]): An Iterable of float numbers.

    Returns:
    -------
        float: The product of all elements in `li`, 1 for an empty Iterable.

    """
    product = 1
    for i in li:
        product *= i
    return product


def argmax(li: Iterable[float]) -> int:
    """Returns the position of the first largest element of a non-empty Iterable."""
    best = 0
    best_val = float("-inf")
    for i, x in enumerate(li):
        if x > best_val:
            best, best_val = i, x
    return best
