"""Network engine: an ordered chain of components closed by a loss function.

The engine only talks to layers through the `Component` and `LossFunction`
protocols, and to numbers through the primitives of `TensorBackend`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence, Tuple

from .tensor_data import IndexingError
from .tensor_functions import tensor
from .tensor_ops import SimpleBackend

if TYPE_CHECKING:
    from typing import Iterable

    from .tensor import Tensor
    from .tensor_ops import TensorBackend


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dimensions:
    """Declared per-sample shapes, without the batch dimension."""

    inputs: Tuple[int, ...]
    outputs: Tuple[int, ...] = ()


class Component(Protocol):
    def dimensions(self) -> Dimensions:
        """Returns the declared input and output shapes."""
        ...

    def apply(self, input: Tensor) -> Tensor:
        """Computes the output for a batch of inputs.

        The returned tensor is the cache handed back to `backprop`; it stays
        valid until the next call to `apply`.
        """
        ...

    def backprop(
        self, input_buffer: Tensor, output_buffer: Tensor, output_gradient: Tensor
    ) -> Tensor:
        """Accumulates weight gradients and returns the gradient for the input.

        Must add into the gradient tensors, never overwrite them.
        """
        ...

    def weights(self) -> Sequence[Tensor]:
        """Returns the weight tensors owned by this component."""
        ...

    def gradients(self) -> Sequence[Tensor]:
        """Returns the gradient tensors, index-paired with `weights()`."""
        ...

    def zero_grad(self) -> None:
        """Sets every gradient tensor to zero."""
        ...

    def copy(self) -> Component:
        """Deep copy of the weights with fresh gradients and output cache."""
        ...

    def describe(self) -> str:
        """Returns a human readable description."""
        ...


class LossFunction(Protocol):
    def dimensions(self) -> Dimensions:
        """Returns the expected input shape."""
        ...

    def apply(self, output: Tensor, correct: Sequence[int]) -> float:
        """Computes the scalar loss of `output` against the correct indices."""
        ...

    def backprop(self, output: Tensor, correct: Sequence[int]) -> Tensor:
        """Returns the gradient of the loss, shaped like `output`."""
        ...

    def copy(self) -> LossFunction:
        """Returns an independent copy."""
        ...

    def describe(self) -> str:
        """Returns a human readable description."""
        ...


@dataclass
class DataPoint:
    """An input batch (usually one row) and the indices of the correct outputs."""

    input: Tensor
    correct: Tuple[int, ...]

    @staticmethod
    def make(
        values: Iterable[float],
        correct: Iterable[int],
        backend: TensorBackend = SimpleBackend,
    ) -> DataPoint:
        """Builds a single-row data point from a flat list of input values."""
        return DataPoint(tensor([list(values)], backend=backend), tuple(correct))


class NetworkValidationError(ValueError):
    """Raised by training drivers when `NeuralNetwork.validate` reports problems."""

    def __init__(self, errors: List[str]):
        super().__init__("\n".join(errors))
        self.errors = errors


class NeuralNetwork:
    """A linear chain of components followed by a loss function.

    `weights`, `gradients` and `out_bufs` are derived views over the
    components. They share storage with the components and are rebuilt by
    `refresh`, which must be called after replacing `components`.
    """

    components: List[Component]
    loss: LossFunction
    weights: List[Tensor]
    gradients: List[Tensor]
    out_bufs: List[Optional[Tensor]]

    def __init__(self, components: Sequence[Component], loss: LossFunction):
        self.components = list(components)
        self.loss = loss
        self.refresh()

    def refresh(self) -> None:
        """Rebuild the derived weight, gradient and output views."""
        self.weights = [w for c in self.components for w in c.weights()]
        self.gradients = [g for c in self.components for g in c.gradients()]
        self.out_bufs = [None] * len(self.components)

    def describe(self) -> str:
        lines = [f"{i}: {c.describe()}" for i, c in enumerate(self.components)]
        lines.append(f"loss: {self.loss.describe()}")
        return "\n".join(lines)

    def validate(self) -> Optional[List[str]]:
        """Check declared shapes along the chain and against the loss function.

        Returns:
        -------
            None if every check passes, otherwise one message per mismatch.

        """
        errors = []
        for i in range(1, len(self.components)):
            prev, cur = self.components[i - 1], self.components[i]
            out_dims = tuple(prev.dimensions().outputs)
            in_dims = tuple(cur.dimensions().inputs)
            if out_dims != in_dims:
                errors.append(
                    f"Component {i - 1} ({prev.describe()}) outputs {out_dims} "
                    f"but component {i} ({cur.describe()}) expects {in_dims}."
                )

        # An empty chain declares no output shape to check the loss against.
        if self.components:
            last = self.components[-1]
            out_dims = tuple(last.dimensions().outputs)
            loss_dims = tuple(self.loss.dimensions().inputs)
            if out_dims != loss_dims:
                errors.append(
                    f"Last component ({last.describe()}) outputs {out_dims} "
                    f"but the loss function ({self.loss.describe()}) expects {loss_dims}."
                )

        if len(self.weights) != len(self.gradients):
            errors.append(
                f"{len(self.weights)} weight tensors but {len(self.gradients)} gradients."
            )
        for i, (w, g) in enumerate(zip(self.weights, self.gradients)):
            if w.shape != g.shape:
                errors.append(
                    f"Weight {i} has shape {w.shape} but its gradient has shape {g.shape}."
                )

        if errors:
            logger.warning("Network failed validation with %d problem(s)", len(errors))
            return errors
        return None

    def eval(self, input: Tensor) -> Tensor:
        """Feed `input` through every component, keeping each output in `out_bufs`."""
        x = input
        for i, component in enumerate(self.components):
            x = component.apply(x)
            self.out_bufs[i] = x
        return x

    def compute_loss(self, point: DataPoint) -> float:
        return self.loss.apply(self.eval(point.input), point.correct)

    def zero_grad(self) -> None:
        for component in self.components:
            component.zero_grad()

    def backprop(self, point: DataPoint) -> None:
        """Add the gradient of the loss on `point` to every component's gradients.

        Gradients accumulate; call `zero_grad` first to start a new sum.
        """
        if not self.components:
            return
        output = self.eval(point.input)
        grad = self.loss.backprop(output, point.correct)
        for i in range(len(self.components) - 1, -1, -1):
            # The first component never produced a cached input, it reads the data.
            input_buffer = point.input if i == 0 else self.out_bufs[i - 1]
            output_buffer = self.out_bufs[i]
            assert input_buffer is not None and output_buffer is not None
            grad = self.components[i].backprop(input_buffer, output_buffer, grad)

    def gradient_descent_step(
        self, alpha: float, lam: float, batch: Sequence[DataPoint]
    ) -> None:
        """One mini-batch update: mean gradient, optional L2 term, then `w -= alpha * g`.

        Args:
        ----
            alpha (float): learning rate
            lam (float): L2 regularization strength, 0 disables it
            batch (Sequence[DataPoint]): the mini-batch

        """
        self.gradient_descent_step_range(alpha, lam, batch, 0, len(batch))

    def gradient_descent_step_range(
        self,
        alpha: float,
        lam: float,
        data: Sequence[DataPoint],
        start: int,
        end: int,
    ) -> None:
        """`gradient_descent_step` on the mini-batch `data[start:end]` without slicing."""
        if not 0 <= start <= end <= len(data):
            raise IndexingError(f"Batch [{start}, {end}) out of range {len(data)}.")

        self.zero_grad()
        for i in range(start, end):
            self.backprop(data[i])

        count = end - start
        if count == 0:
            logger.warning("Empty batch, weights left unchanged")
            return

        for g in self.gradients:
            g.f.scale(g, 1.0 / count)

        if lam != 0:
            for w, g in zip(self.weights, self.gradients):
                g.f.add_scaled(g, w.batched(), 0, 2.0 * lam)

        for w, g in zip(self.weights, self.gradients):
            w.f.add_scaled(w, g.batched(), 0, -alpha)

    def copy(self) -> NeuralNetwork:
        """Independent network with copied weights and zeroed gradients."""
        return NeuralNetwork([c.copy() for c in self.components], self.loss.copy())
