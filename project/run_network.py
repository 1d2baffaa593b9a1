"""
Be sure you have miniml installed in you Virtual Env.
>>> pip install -Ue .
"""
import logging
import random

import miniml


def default_log_fn(report):
    print(
        "Epoch ",
        report.epoch,
        " loss ",
        report.loss,
        "accuracy",
        report.accuracy,
    )


def make_network(hidden, batch_size=1, backend=miniml.FastTensorBackend, seed=0):
    """Two hidden ReLU layers and a softmax over two classes.

    Args:
        hidden (int): The number of neurons in the hidden layers.
        batch_size (int): Rows to size the layer buffers for.
        backend (TensorBackend): Backend running the kernels.
        seed (int): Seed for the initial weights.
    """
    rng = random.Random(seed)
    components = [
        miniml.FullyConnected(2, hidden, batch_size, backend, rng),
        miniml.ReLU(hidden, batch_size, backend),
        miniml.FullyConnected(hidden, hidden, batch_size, backend, rng),
        miniml.ReLU(hidden, batch_size, backend),
        miniml.FullyConnected(hidden, 2, batch_size, backend, rng),
        miniml.Softmax(2, batch_size, backend),
    ]
    return miniml.NeuralNetwork(components, miniml.CrossEntropy(2, backend))


class NetworkTrain:
    def __init__(self, hidden_layers, backend=miniml.FastTensorBackend):
        self.hidden_layers = hidden_layers
        self.backend = backend
        self.network = make_network(hidden_layers, backend=backend)

    def run_one(self, x):
        return self.network.eval(miniml.tensor([list(x)], backend=self.backend))

    def train(self, data, config, log_fn=default_log_fn):
        self.network = make_network(self.hidden_layers, backend=self.backend)
        points = miniml.to_data_points(data, backend=self.backend)
        return miniml.SGD(self.network, config).train(points, log_fn=log_fn)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    PTS = 50
    HIDDEN = 10
    RATE = 0.1
    data = miniml.datasets["Xor"](PTS, random.Random(1))
    config = miniml.SGDConfig(alpha=RATE, lam=1e-4, alpha_decay=0.99, epochs=200)
    NetworkTrain(HIDDEN).train(data, config)
