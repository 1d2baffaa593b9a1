"""Mini-batch stochastic gradient descent driver and evaluation helpers."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

from . import operators
from .network import NetworkValidationError

if TYPE_CHECKING:
    from typing import Callable, List, Optional, Sequence

    from .network import DataPoint, NeuralNetwork


logger = logging.getLogger(__name__)


@dataclass
class SGDConfig:
    """Training parameters.

    Attributes
    ----------
        alpha (float): Learning rate.
        lam (float): L2 regularization strength.
        alpha_decay (float): Factor applied to `alpha` after every epoch.
        lam_decay (float): Factor applied to `lam` after every epoch.
        batch_size (int): Data points per gradient descent step.
        epochs (int): Passes over the training data.
        shuffle (bool): Reorder the training data before every epoch.
        seed (int): Seed for the shuffling generator.

    """

    alpha: float = 0.1
    lam: float = 0.0
    alpha_decay: float = 1.0
    lam_decay: float = 1.0
    batch_size: int = 10
    epochs: int = 10
    shuffle: bool = True
    seed: int = 0


@dataclass
class EpochReport:
    """Progress reported after each epoch."""

    epoch: int
    loss: float
    accuracy: float
    alpha: float
    lam: float


def accuracy(network: NeuralNetwork, data: Sequence[DataPoint]) -> float:
    """Fraction of data points whose highest output is one of the correct indices."""
    if not data:
        return 0.0
    correct = 0
    for point in data:
        out = network.eval(point.input)
        row = [out[0, i] for i in range(out.shape[1])]
        if operators.argmax(row) in point.correct:
            correct += 1
    return correct / len(data)


def total_loss(network: NeuralNetwork, data: Sequence[DataPoint]) -> float:
    """Sum of the loss over every data point."""
    return sum(network.compute_loss(point) for point in data)


def default_log_fn(report: EpochReport) -> None:
    logger.info(
        "Epoch %d loss %.6f accuracy %.4f alpha %g lambda %g",
        report.epoch,
        report.loss,
        report.accuracy,
        report.alpha,
        report.lam,
    )


class SGD:
    def __init__(self, network: NeuralNetwork, config: SGDConfig):
        self.network = network
        self.config = config

    def train(
        self,
        data: Sequence[DataPoint],
        validation: Optional[Sequence[DataPoint]] = None,
        log_fn: Callable[[EpochReport], None] = default_log_fn,
    ) -> List[EpochReport]:
        """Run `config.epochs` epochs of mini-batch gradient descent.

        Loss is measured on the training data, accuracy on `validation`
        when given and on the training data otherwise.

        Raises:
        ------
            NetworkValidationError: if the network fails `validate`.

        """
        errors = self.network.validate()
        if errors is not None:
            raise NetworkValidationError(errors)

        config = self.config
        rng = random.Random(config.seed)
        order = list(data)
        alpha, lam = config.alpha, config.lam
        reports = []
        for epoch in range(1, config.epochs + 1):
            if config.shuffle:
                rng.shuffle(order)
            for start in range(0, len(order), config.batch_size):
                end = min(start + config.batch_size, len(order))
                self.network.gradient_descent_step_range(alpha, lam, order, start, end)

            report = EpochReport(
                epoch,
                total_loss(self.network, order),
                accuracy(self.network, validation if validation is not None else order),
                alpha,
                lam,
            )
            reports.append(report)
            log_fn(report)

            alpha *= config.alpha_decay
            lam *= config.lam_decay
        return reports
