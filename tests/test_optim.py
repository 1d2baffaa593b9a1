import random

import pytest

from miniml import (
    SGD,
    CrossEntropy,
    DataPoint,
    FullyConnected,
    NetworkValidationError,
    NeuralNetwork,
    ReLU,
    SGDConfig,
    Softmax,
    accuracy,
    datasets,
    to_data_points,
    total_loss,
)


def make_network(hidden=6, seed=0):
    rng = random.Random(seed)
    return NeuralNetwork(
        [
            FullyConnected(2, hidden, rng=rng),
            ReLU(hidden),
            FullyConnected(hidden, 2, rng=rng),
            Softmax(2),
        ],
        CrossEntropy(2),
    )


def test_training_reduces_loss():
    data = to_data_points(datasets["Simple"](40, random.Random(0)))
    network = make_network()
    before = total_loss(network, data)
    config = SGDConfig(alpha=0.1, batch_size=5, epochs=20, seed=1)
    reports = SGD(network, config).train(data, log_fn=lambda report: None)
    assert len(reports) == 20
    assert reports[-1].loss < before


def test_decay_schedule_is_reported():
    data = to_data_points(datasets["Diag"](10, random.Random(2)))
    seen = []
    config = SGDConfig(
        alpha=0.5, lam=0.01, alpha_decay=0.5, lam_decay=0.1, batch_size=3, epochs=3
    )
    SGD(make_network(), config).train(data, log_fn=seen.append)
    assert [r.epoch for r in seen] == [1, 2, 3]
    assert [r.alpha for r in seen] == [0.5, 0.25, 0.125]
    assert [r.lam for r in seen] == pytest.approx([0.01, 0.001, 0.0001])


def test_invalid_network_is_rejected():
    network = NeuralNetwork([FullyConnected(2, 3), ReLU(4)], CrossEntropy(2))
    with pytest.raises(NetworkValidationError) as info:
        SGD(network, SGDConfig()).train([])
    assert len(info.value.errors) == 2


def test_accuracy():
    network = NeuralNetwork([Softmax(2)], CrossEntropy(2))
    data = [
        DataPoint.make([2.0, 0.0], [0]),
        DataPoint.make([0.0, 2.0], [1]),
        DataPoint.make([0.0, 2.0], [0]),
        DataPoint.make([1.0, 0.0], [0, 1]),
    ]
    assert accuracy(network, data) == 0.75
    assert accuracy(network, []) == 0.0
