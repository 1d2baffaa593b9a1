"""Concrete components and loss functions built on the tensor primitives.

Components allocate their buffers for `batch_size` rows up front and only
grow them when a larger batch arrives; smaller batches run over the first
rows of the same buffers.
"""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING

import numpy as np

from . import operators
from .network import Dimensions
from .tensor_functions import rand, zeros
from .tensor_ops import SimpleBackend

if TYPE_CHECKING:
    from typing import List, Optional, Sequence, Tuple

    from .tensor import Tensor
    from .tensor_ops import TensorBackend


logger = logging.getLogger(__name__)


def RParam(
    *shape: int,
    backend: TensorBackend = SimpleBackend,
    rng: Optional[random.Random] = None,
) -> Tensor:
    """A parameter tensor drawn uniformly from [-1, 1)."""
    r = rand(shape, backend=backend, rng=rng)
    r.storage[:] = 2.0 * (r.storage - 0.5)
    return r


class _Buffered:
    """Shared batch-buffer bookkeeping for components."""

    batch_size: int

    def _allocate(self) -> None:
        raise NotImplementedError

    def _reserve(self, rows: int) -> int:
        if rows > self.batch_size:
            logger.debug(
                "%s: growing batch buffers from %d to %d rows",
                self.describe(),  # type: ignore[attr-defined]
                self.batch_size,
                rows,
            )
            self.batch_size = rows
            self._allocate()
        return rows


class FullyConnected(_Buffered):
    """Affine layer `y = W x + b` with `W` of shape (out_size, in_size).

    Args:
    ----
        in_size (int): The size of each input sample.
        out_size (int): The size of each output sample.
        batch_size (int): Rows to allocate buffers for.
        backend (TensorBackend): Backend running the primitives.
        rng (random.Random): Source for the initial weights.
        params (Tuple[Tensor, Tensor]): Initial `(W, b)`, used as given.

    """

    def __init__(
        self,
        in_size: int,
        out_size: int,
        batch_size: int = 1,
        backend: TensorBackend = SimpleBackend,
        rng: Optional[random.Random] = None,
        params: Optional[Tuple[Tensor, Tensor]] = None,
    ):
        self.in_size = in_size
        self.out_size = out_size
        self.batch_size = batch_size
        self.backend = backend
        if params is None:
            self.w = RParam(out_size, in_size, backend=backend, rng=rng)
            self.b = RParam(out_size, backend=backend, rng=rng)
        else:
            self.w, self.b = params
        self.dw = self.w.zeros()
        self.db = self.b.zeros()
        self._allocate()

    def _allocate(self) -> None:
        s, m, n = self.batch_size, self.out_size, self.in_size
        self._out = zeros((s, m), backend=self.backend)
        self._dx = zeros((s, n), backend=self.backend)
        self._dw_rows = zeros((s, m, n), backend=self.backend)
        self._db_rows = zeros((s, m), backend=self.backend)

    def dimensions(self) -> Dimensions:
        return Dimensions((self.in_size,), (self.out_size,))

    def apply(self, input: Tensor) -> Tensor:
        rows = self._reserve(input.shape[0])
        self.backend.affine(self._out, self.w, input, self.b, rows)
        return self._out.rows(rows)

    def backprop(
        self, input_buffer: Tensor, output_buffer: Tensor, output_gradient: Tensor
    ) -> Tensor:
        f = self.backend
        rows = output_gradient.shape[0]

        # dW += sum_s dout[s] x[s]^t
        f.fill(self._dw_rows, 0.0)
        f.outer_add(self._dw_rows, output_gradient, input_buffer, rows)
        f.batch_sum(self._dw_rows, rows)
        f.add_scaled(self.dw, self._dw_rows, 0, 1.0)

        # db += sum_s dout[s]
        f.fill(self._db_rows, 0.0)
        f.add(self._db_rows, output_gradient, rows)
        f.batch_sum(self._db_rows, rows)
        f.add_scaled(self.db, self._db_rows, 0, 1.0)

        f.transposed_matmul(self._dx, output_gradient, self.w, rows)
        return self._dx.rows(rows)

    def weights(self) -> List[Tensor]:
        return [self.w, self.b]

    def gradients(self) -> List[Tensor]:
        return [self.dw, self.db]

    def zero_grad(self) -> None:
        self.backend.fill(self.dw, 0.0)
        self.backend.fill(self.db, 0.0)

    def copy(self) -> FullyConnected:
        return FullyConnected(
            self.in_size,
            self.out_size,
            batch_size=self.batch_size,
            backend=self.backend,
            params=(self.w.copy(), self.b.copy()),
        )

    def describe(self) -> str:
        return f"FullyConnected({self.in_size} -> {self.out_size})"


class _Activation(_Buffered):
    """Weightless elementwise or row-wise component over `size` features."""

    def __init__(
        self, size: int, batch_size: int = 1, backend: TensorBackend = SimpleBackend
    ):
        self.size = size
        self.batch_size = batch_size
        self.backend = backend
        self._allocate()

    def _allocate(self) -> None:
        self._out = zeros((self.batch_size, self.size), backend=self.backend)
        self._dx = zeros((self.batch_size, self.size), backend=self.backend)

    def dimensions(self) -> Dimensions:
        return Dimensions((self.size,), (self.size,))

    def weights(self) -> List[Tensor]:
        return []

    def gradients(self) -> List[Tensor]:
        return []

    def zero_grad(self) -> None:
        pass

    def copy(self) -> _Activation:
        return type(self)(self.size, self.batch_size, self.backend)

    def describe(self) -> str:
        return f"{type(self).__name__}({self.size})"


class ReLU(_Activation):
    def apply(self, input: Tensor) -> Tensor:
        rows = self._reserve(input.shape[0])
        self.backend.relu(self._out, input, rows)
        return self._out.rows(rows)

    def backprop(
        self, input_buffer: Tensor, output_buffer: Tensor, output_gradient: Tensor
    ) -> Tensor:
        rows = output_gradient.shape[0]
        self.backend.relu_back(self._dx, output_buffer, output_gradient, rows)
        return self._dx.rows(rows)


class Softmax(_Activation):
    def apply(self, input: Tensor) -> Tensor:
        rows = self._reserve(input.shape[0])
        self.backend.softmax(self._out, input, rows)
        return self._out.rows(rows)

    def backprop(
        self, input_buffer: Tensor, output_buffer: Tensor, output_gradient: Tensor
    ) -> Tensor:
        rows = output_gradient.shape[0]
        self.backend.softmax_back(self._dx, output_buffer, output_gradient, rows)
        return self._dx.rows(rows)


class _Loss:
    """Gradient buffer shared by the loss functions."""

    def __init__(self, size: int, backend: TensorBackend = SimpleBackend):
        self.size = size
        self.backend = backend
        self._grad = zeros((1, size), backend=backend)

    def _gradient_buffer(self, rows: int) -> Tensor:
        if rows > self._grad.shape[0]:
            self._grad = zeros((rows, self.size), backend=self.backend)
        self.backend.fill(self._grad, 0.0)
        return self._grad.rows(rows)

    def dimensions(self) -> Dimensions:
        return Dimensions((self.size,))

    def copy(self) -> _Loss:
        return type(self)(self.size, self.backend)

    def describe(self) -> str:
        return f"{type(self).__name__}({self.size})"


class CrossEntropy(_Loss):
    """`-sum_rows sum_{y in correct} log(p[row, y])` over probabilities `p`."""

    def apply(self, output: Tensor, correct: Sequence[int]) -> float:
        total = 0.0
        for s in range(output.shape[0]):
            for y in correct:
                total -= operators.log(output[s, y])
        return total

    def backprop(self, output: Tensor, correct: Sequence[int]) -> Tensor:
        grad = self._gradient_buffer(output.shape[0])
        for s in range(output.shape[0]):
            for y in correct:
                grad.f.one_hot_add(grad, (s, y), -operators.inv(output[s, y]))
        return grad


class MeanSquaredError(_Loss):
    """`sum (p - t)^2` against the indicator vector `t` of the correct indices."""

    def _difference(self, output: Tensor, correct: Sequence[int]) -> Tensor:
        rows = output.shape[0]
        diff = self._gradient_buffer(rows)
        diff.f.add(diff, output, rows)
        for s in range(rows):
            for y in correct:
                diff.f.one_hot_add(diff, (s, y), -1.0)
        return diff

    def apply(self, output: Tensor, correct: Sequence[int]) -> float:
        d = self._difference(output, correct).storage
        return float(np.dot(d, d))

    def backprop(self, output: Tensor, correct: Sequence[int]) -> Tensor:
        diff = self._difference(output, correct)
        diff.f.scale(diff, 2.0)
        return diff
