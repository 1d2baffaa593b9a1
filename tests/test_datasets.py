import random

import pytest

from miniml import FastTensorBackend, datasets, to_data_points


@pytest.mark.parametrize("name", sorted(datasets))
def test_graphs_are_labelled(name):
    graph = datasets[name](20, random.Random(0))
    assert graph.N == len(graph.X) == len(graph.y) == 20
    assert set(graph.y) <= {0, 1}
    for x_1, x_2 in graph.X:
        assert isinstance(x_1, float) and isinstance(x_2, float)


def test_seeded_generation_is_reproducible():
    a = datasets["Xor"](15, random.Random(7))
    b = datasets["Xor"](15, random.Random(7))
    assert a == b


def test_to_data_points():
    graph = datasets["Circle"](5, random.Random(3))
    points = to_data_points(graph, backend=FastTensorBackend)
    assert len(points) == 5
    for point, pt, label in zip(points, graph.X, graph.y):
        assert point.input.shape == (1, 2)
        assert point.input.backend is FastTensorBackend
        assert (point.input[0, 0], point.input[0, 1]) == pt
        assert point.correct == (label,)
