import random

import numpy as np
import pytest

from miniml import (
    CrossEntropy,
    DataPoint,
    Dimensions,
    FullyConnected,
    FastTensorBackend,
    IndexingError,
    MeanSquaredError,
    NeuralNetwork,
    ReLU,
    SimpleBackend,
    Softmax,
    tensor,
)


class Recorder:
    """Weightless identity component that records what backprop receives."""

    def __init__(self, name, size=2, out_size=None):
        self.name = name
        self.size = size
        self.out_size = size if out_size is None else out_size
        self.calls = []
        self.last_output = None

    def dimensions(self):
        return Dimensions((self.size,), (self.out_size,))

    def apply(self, input):
        self.last_output = input.copy()
        return self.last_output

    def backprop(self, input_buffer, output_buffer, output_gradient):
        input_gradient = output_gradient.copy()
        self.calls.append((input_buffer, output_buffer, output_gradient, input_gradient))
        return input_gradient

    def weights(self):
        return []

    def gradients(self):
        return []

    def zero_grad(self):
        pass

    def copy(self):
        return Recorder(self.name, self.size, self.out_size)

    def describe(self):
        return self.name


def linear_network(w, b):
    layer = FullyConnected(2, 1, params=(tensor([w]), tensor([b])))
    return NeuralNetwork([layer], MeanSquaredError(1))


def sample_points():
    return [DataPoint.make([1.0, 2.0], [0]), DataPoint.make([3.0, -1.0], [])]


def test_derived_caches_are_views():
    net = linear_network([0.5, -1.0], 0.25)
    layer = net.components[0]
    assert net.weights[0] is layer.w and net.weights[1] is layer.b
    assert net.gradients[0] is layer.dw and net.gradients[1] is layer.db
    net.weights[0][0, 0] = 3.0
    assert layer.w[0, 0] == 3.0
    assert net.out_bufs == [None]


def test_refresh_after_replacing_components():
    net = linear_network([0.5, -1.0], 0.25)
    net.components = [FullyConnected(2, 3), ReLU(3), FullyConnected(3, 1)]
    net.refresh()
    assert len(net.weights) == len(net.gradients) == 4
    assert len(net.out_bufs) == 3


def test_validate_ok():
    net = NeuralNetwork(
        [FullyConnected(2, 3), ReLU(3), FullyConnected(3, 2), Softmax(2)], CrossEntropy(2)
    )
    assert net.validate() is None


def test_validate_collects_every_mismatch():
    net = NeuralNetwork(
        [FullyConnected(2, 3), ReLU(4), FullyConnected(3, 2)], CrossEntropy(5)
    )
    errors = net.validate()
    assert errors is not None
    assert len(errors) == 3
    assert "ReLU(4)" in errors[0]
    assert "ReLU(4)" in errors[1]
    assert "CrossEntropy(5)" in errors[2]


def test_validate_empty_network():
    assert NeuralNetwork([], CrossEntropy(2)).validate() is None


def test_eval_feeds_outputs_forward():
    net = NeuralNetwork([FullyConnected(2, 3), ReLU(3)], CrossEntropy(3))
    x = tensor([[0.3, -0.7]])
    out = net.eval(x)
    hidden = net.out_bufs[0]
    assert out is net.out_bufs[1]
    np.testing.assert_array_equal(out.to_numpy(), np.maximum(hidden.to_numpy(), 0.0))


def test_eval_without_components_returns_input():
    net = NeuralNetwork([], CrossEntropy(2))
    x = tensor([[0.3, 0.7]])
    assert net.eval(x) is x


def test_backprop_without_components_is_noop():
    net = NeuralNetwork([], MeanSquaredError(2))
    net.backprop(DataPoint.make([1.0, 2.0], [0]))
    net.gradient_descent_step(0.1, 0.1, [DataPoint.make([1.0, 2.0], [0])])


def test_backprop_single_component_reads_data_input():
    comp = Recorder("only")
    net = NeuralNetwork([comp], MeanSquaredError(2))
    point = DataPoint.make([1.0, 2.0], [1])
    net.backprop(point)
    ((input_buffer, output_buffer, output_gradient, _),) = comp.calls
    assert input_buffer is point.input
    assert output_buffer is comp.last_output
    # d/dp (p - t)^2 with p = (1, 2), t = (0, 1)
    assert output_gradient.to_numpy().tolist() == [[2.0, 2.0]]


def test_backprop_threads_gradients_through_chain():
    comps = [Recorder("a"), Recorder("b"), Recorder("c")]
    net = NeuralNetwork(comps, MeanSquaredError(2))
    point = DataPoint.make([1.0, 2.0], [0])
    net.backprop(point)
    a, b, c = (comp.calls[0] for comp in comps)

    assert c[0] is net.out_bufs[1]
    assert c[1] is net.out_bufs[2]
    assert b[0] is net.out_bufs[0]
    assert b[2] is c[3]
    assert a[0] is point.input
    assert a[2] is b[3]


def test_backprop_accumulates_sum_of_samples():
    net = linear_network([0.5, -1.0], 0.25)
    p1, p2 = sample_points()
    net.zero_grad()
    net.backprop(p1)
    net.backprop(p2)
    # p1: out = -1.25, target 1, dL/dout = -4.5
    # p2: out = 2.75, target 0, dL/dout = 5.5
    assert net.gradients[0].to_numpy().tolist() == [[-4.5 + 16.5, -9.0 - 5.5]]
    assert net.gradients[1].to_numpy().tolist() == [1.0]

    single = []
    for p in (p1, p2):
        net.zero_grad()
        net.backprop(p)
        single.append([g.to_numpy().copy() for g in net.gradients])
    net.zero_grad()
    net.backprop(p1)
    net.backprop(p2)
    for i, g in enumerate(net.gradients):
        np.testing.assert_array_equal(g.to_numpy(), single[0][i] + single[1][i])


def test_backprop_without_zero_grad_keeps_accumulating():
    net = linear_network([0.5, -1.0], 0.25)
    p1, _ = sample_points()
    net.zero_grad()
    net.backprop(p1)
    net.backprop(p1)
    assert net.gradients[1].to_numpy().tolist() == [-9.0]


@pytest.mark.parametrize("lam", [0.0, 0.3])
def test_gradient_step_with_zero_alpha_keeps_weights(lam):
    net = linear_network([0.5, -1.0], 0.25)
    before = [w.to_numpy() for w in net.weights]
    net.gradient_descent_step(0.0, lam, sample_points())
    for w, old in zip(net.weights, before):
        np.testing.assert_array_equal(w.to_numpy(), old)


def test_gradient_step_mean_gradient_without_regularization():
    net = linear_network([0.5, -1.0], 0.25)
    net.gradient_descent_step(0.0, 0.0, sample_points())
    assert net.gradients[0].to_numpy().tolist() == [[6.0, -7.25]]
    assert net.gradients[1].to_numpy().tolist() == [0.5]


def test_gradient_step_regularized_gradient():
    lam = 0.25
    net = linear_network([0.5, -1.0], 0.25)
    net.gradient_descent_step(0.0, lam, sample_points())
    assert net.gradients[0].to_numpy().tolist() == [
        [6.0 + 2 * lam * 0.5, -7.25 + 2 * lam * -1.0]
    ]
    assert net.gradients[1].to_numpy().tolist() == [0.5 + 2 * lam * 0.25]


def test_gradient_step_updates_weights():
    net = linear_network([0.5, -1.0], 0.25)
    net.gradient_descent_step(0.5, 0.0, sample_points())
    assert net.weights[0].to_numpy().tolist() == [[0.5 - 3.0, -1.0 + 3.625]]
    assert net.weights[1].to_numpy().tolist() == [0.0]


def test_gradient_step_range_matches_sublist():
    data = [DataPoint.make([0.1 * i, 1.0 - 0.2 * i], [i % 2]) for i in range(6)]
    net = NeuralNetwork(
        [
            FullyConnected(2, 3, rng=random.Random(0)),
            ReLU(3),
            FullyConnected(3, 2, rng=random.Random(1)),
            Softmax(2),
        ],
        CrossEntropy(2),
    )
    other = net.copy()
    net.gradient_descent_step(0.1, 0.01, data[2:5])
    other.gradient_descent_step_range(0.1, 0.01, data, 2, 5)
    for a, b in zip(net.weights, other.weights):
        np.testing.assert_array_equal(a.to_numpy(), b.to_numpy())
    with pytest.raises(IndexingError):
        other.gradient_descent_step_range(0.1, 0.0, data, 4, 7)


def test_gradient_step_empty_batch():
    net = linear_network([0.5, -1.0], 0.25)
    before = [w.to_numpy() for w in net.weights]
    net.gradient_descent_step(0.5, 0.1, [])
    for w, old in zip(net.weights, before):
        np.testing.assert_array_equal(w.to_numpy(), old)


def test_copy_is_independent():
    net = linear_network([0.5, -1.0], 0.25)
    net.backprop(sample_points()[0])
    dup = net.copy()
    assert dup.validate() is None
    for g in dup.gradients:
        assert not g.to_numpy().any()
    dup.weights[0][0, 0] = 9.0
    assert net.weights[0][0, 0] == 0.5
    assert dup.weights[0] is dup.components[0].w


def test_compute_loss():
    net = linear_network([0.5, -1.0], 0.25)
    p1, p2 = sample_points()
    assert net.compute_loss(p1) == pytest.approx(2.25**2)
    assert net.compute_loss(p2) == pytest.approx(2.75**2)


def test_backends_agree():
    def build(backend):
        data = [
            DataPoint.make([0.1 * i, 1.0 - 0.2 * i], [i % 2], backend) for i in range(4)
        ]
        net = NeuralNetwork(
            [
                FullyConnected(2, 3, backend=backend, rng=random.Random(0)),
                ReLU(3, backend=backend),
                FullyConnected(3, 2, backend=backend, rng=random.Random(1)),
                Softmax(2, backend=backend),
            ],
            CrossEntropy(2, backend),
        )
        net.gradient_descent_step(0.1, 0.01, data)
        return net, data

    simple, simple_data = build(SimpleBackend)
    fast, fast_data = build(FastTensorBackend)
    for a, b in zip(simple.weights, fast.weights):
        np.testing.assert_allclose(a.to_numpy(), b.to_numpy(), rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(
        simple.eval(simple_data[0].input).to_numpy(),
        fast.eval(fast_data[0].input).to_numpy(),
        rtol=1e-12,
        atol=1e-12,
    )
