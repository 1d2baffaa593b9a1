"""Synthetic two-class point datasets for exercising networks."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from .network import DataPoint
from .tensor_ops import SimpleBackend

if TYPE_CHECKING:
    from .tensor_ops import TensorBackend


def make_pts(N: int, rng: Optional[random.Random] = None) -> List[Tuple[float, float]]:
    """Generates a list of N random 2D points within the range [0, 1].

    Args:
    ----
        N (int): The number of points to generate.
        rng (random.Random): Source of randomness, a fresh one by default.

    Returns:
    -------
    List[Tuple[float, float]]: A list of tuples, each representing a 2D point (x_1, x_2).

    """
    if rng is None:
        rng = random.Random()
    return [(rng.random(), rng.random()) for _ in range(N)]


@dataclass
class Graph:
    """A set of 2D points with a 0/1 label each.

    Attributes
    ----------
        N (int): The number of points in the graph.
        X (List[Tuple[float, float]]): A list of tuples representing 2D points.
        y (List[int]): A list of integer labels associated with each point.

    """

    N: int
    X: List[Tuple[float, float]]
    y: List[int]


def _labelled(
    N: int, rule: Callable[[float, float], bool], rng: Optional[random.Random]
) -> Graph:
    X = make_pts(N, rng)
    return Graph(N, X, [1 if rule(x_1, x_2) else 0 for x_1, x_2 in X])


def simple(N: int, rng: Optional[random.Random] = None) -> Graph:
    """Label is 1 if the x-coordinate is less than 0.5."""
    return _labelled(N, lambda x_1, x_2: x_1 < 0.5, rng)


def diag(N: int, rng: Optional[random.Random] = None) -> Graph:
    """Label is 1 if the coordinates sum to less than 0.5."""
    return _labelled(N, lambda x_1, x_2: x_1 + x_2 < 0.5, rng)


def split(N: int, rng: Optional[random.Random] = None) -> Graph:
    """Label is 1 if the x-coordinate is less than 0.2 or greater than 0.8."""
    return _labelled(N, lambda x_1, x_2: x_1 < 0.2 or x_1 > 0.8, rng)


def xor(N: int, rng: Optional[random.Random] = None) -> Graph:
    """Label is 1 if the point falls in the top-left or bottom-right quadrant."""
    return _labelled(
        N,
        lambda x_1, x_2: (x_1 < 0.5 and x_2 > 0.5) or (x_1 > 0.5 and x_2 < 0.5),
        rng,
    )


def circle(N: int, rng: Optional[random.Random] = None) -> Graph:
    """Label is 1 outside the circle of radius sqrt(0.1) centered at (0.5, 0.5)."""

    def outside(x_1: float, x_2: float) -> bool:
        x1, x2 = x_1 - 0.5, x_2 - 0.5
        return x1 * x1 + x2 * x2 > 0.1

    return _labelled(N, outside, rng)


def spiral(N: int, rng: Optional[random.Random] = None) -> Graph:
    """Two interleaved spirals with alternating labels; `rng` is unused."""

    def x(t: float) -> float:
        return t * math.cos(t) / 20.0

    def y(t: float) -> float:
        return t * math.sin(t) / 20.0

    half = N // 2
    X = [
        (x(10.0 * (float(i) / half)) + 0.5, y(10.0 * (float(i) / half)) + 0.5)
        for i in range(5 + 0, 5 + half)
    ]
    X = X + [
        (y(-10.0 * (float(i) / half)) + 0.5, x(-10.0 * (float(i) / half)) + 0.5)
        for i in range(5 + 0, 5 + half)
    ]
    y2 = [0] * half + [1] * half
    return Graph(2 * half, X, y2)


def to_data_points(graph: Graph, backend: TensorBackend = SimpleBackend) -> List[DataPoint]:
    """One single-row data point per point, with the label as the correct class."""
    return [
        DataPoint.make(list(pt), (label,), backend=backend)
        for pt, label in zip(graph.X, graph.y)
    ]


datasets: Dict[str, Callable[..., Graph]] = {
    "Simple": simple,
    "Diag": diag,
    "Split": split,
    "Xor": xor,
    "Circle": circle,
    "Spiral": spiral,
}
