from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Type

from . import kernels, operators
from .tensor_data import IndexingError

if TYPE_CHECKING:
    from typing import Callable

    from .tensor import Tensor
    from .tensor_data import Storage, UserIndex


class TensorOps:
    """How kernel bodies from `kernels.py` are turned into callables.

    A backend only chooses how the `prange` loop of each kernel runs; the
    kernels themselves never depend on a concrete backend.
    """

    @staticmethod
    def map(fn: Callable[[float], float]) -> Callable[[Storage, Storage, int], None]:
        """Specialise the elementwise map kernel with `fn`."""
        raise NotImplementedError

    @staticmethod
    def zip(
        fn: Callable[[float, float], float],
    ) -> Callable[[Storage, Storage, Storage, int], None]:
        """Specialise the elementwise zip kernel with `fn`."""
        raise NotImplementedError

    @staticmethod
    def kernel(fn: Callable[..., None]) -> Callable[..., None]:
        """Prepare a fixed kernel body for execution."""
        raise NotImplementedError


class SimpleOps(TensorOps):
    """Runs every kernel as plain Python, one unit of work after another."""

    @staticmethod
    def map(fn: Callable[[float], float]) -> Callable[[Storage, Storage, int], None]:
        """See `TensorOps.map`"""
        return kernels.tensor_map(fn)

    @staticmethod
    def zip(
        fn: Callable[[float, float], float],
    ) -> Callable[[Storage, Storage, Storage, int], None]:
        """See `TensorOps.zip`"""
        return kernels.tensor_zip(fn)

    @staticmethod
    def kernel(fn: Callable[..., None]) -> Callable[..., None]:
        """See `TensorOps.kernel`"""
        return fn


def _row_size(t: Tensor) -> int:
    return int(operators.prod(t.shape[1:]))


def _expect(cond: bool, msg: str) -> None:
    if not cond:
        raise IndexingError(msg)


def _active(s_max: Optional[int], out: Tensor, *batched: Tensor) -> int:
    """Resolve the active batch size against every batched operand.

    Defaults to the full batch capacity of `out`.
    """
    _expect(out.dims >= 1, f"Expected a batched tensor, got shape {out.shape}.")
    if s_max is None:
        s_max = out.shape[0]
    for t in (out,) + batched:
        _expect(
            0 <= s_max <= t.shape[0],
            f"Active batch size {s_max} exceeds capacity of shape {t.shape}.",
        )
    return s_max


class TensorBackend:
    """The batched tensor primitives, bound to one `TensorOps` backend.

    Every primitive mutates its first argument in place and only touches
    the first `s_max` batch rows. Shape violations raise `IndexingError`
    before any kernel is launched.
    """

    def __init__(self, ops: Type[TensorOps]):
        """Dynamically construct a tensor backend based on a `tensor_ops` object
        that implements map, zip, and kernel functions.

        Args:
        ----
            ops : tensor operations object see `tensor_ops.py`

        """
        self.ops = ops
        self.name = ops.__name__

        # Elementwise
        self.relu_map = ops.map(operators.relu)
        self.relu_back_zip = ops.zip(operators.relu_back)
        self.add_zip = ops.zip(operators.add)

        # Fixed kernels
        self._affine = ops.kernel(kernels.affine)
        self._outer_add = ops.kernel(kernels.outer_add)
        self._transposed_matmul = ops.kernel(kernels.transposed_matmul)
        self._softmax = ops.kernel(kernels.softmax)
        self._softmax_back = ops.kernel(kernels.softmax_back)
        self._scale = ops.kernel(kernels.scale)
        self._fill = ops.kernel(kernels.fill)
        self._add_scaled = ops.kernel(kernels.add_scaled)
        self._one_hot_add = ops.kernel(kernels.one_hot_add)
        self._batch_sum = ops.kernel(kernels.batch_sum)

    def __repr__(self) -> str:
        return f"TensorBackend({self.name})"

    def affine(
        self, z: Tensor, w: Tensor, x: Tensor, b: Tensor, s_max: Optional[int] = None
    ) -> None:
        """`z = w x + b` for each active row of `x` (S, N); `w` (M, N), `b` (M,)."""
        _expect(w.dims == 2, f"Weight must be a matrix, got {w.shape}.")
        M, N = w.shape
        _expect(b.shape == (M,), f"Bias {b.shape} does not match weight {w.shape}.")
        _expect(x.dims == 2 and x.shape[1] == N, f"Input {x.shape} vs weight {w.shape}.")
        _expect(z.dims == 2 and z.shape[1] == M, f"Output {z.shape} vs weight {w.shape}.")
        s = _active(s_max, z, x)
        self._affine(z.storage, w.storage, x.storage, b.storage, M, N, s)

    def outer_add(self, z: Tensor, x: Tensor, y: Tensor, s_max: Optional[int] = None) -> None:
        """`z[s] += x[s] y[s]^t` with `x` (S, M), `y` (S, N), `z` (S, M, N)."""
        _expect(x.dims == 2 and y.dims == 2, f"Expected matrices, got {x.shape}, {y.shape}.")
        M, N = x.shape[1], y.shape[1]
        _expect(z.shape[1:] == (M, N), f"Output {z.shape} vs outer product ({M}, {N}).")
        s = _active(s_max, z, x, y)
        self._outer_add(z.storage, x.storage, y.storage, M, N, s)

    def transposed_matmul(
        self, z: Tensor, x: Tensor, w: Tensor, s_max: Optional[int] = None
    ) -> None:
        """`z = (x^t w)^t` with `x` (S, M), `w` (M, N), `z` (S, N)."""
        _expect(w.dims == 2, f"Weight must be a matrix, got {w.shape}.")
        M, N = w.shape
        _expect(x.dims == 2 and x.shape[1] == M, f"Input {x.shape} vs weight {w.shape}.")
        _expect(z.dims == 2 and z.shape[1] == N, f"Output {z.shape} vs weight {w.shape}.")
        s = _active(s_max, z, x)
        self._transposed_matmul(z.storage, x.storage, w.storage, M, N, s)

    def relu(self, z: Tensor, x: Tensor, s_max: Optional[int] = None) -> None:
        """`z = max(0, x)` over the active rows."""
        _expect(z.shape[1:] == x.shape[1:], f"Shape {z.shape} vs {x.shape}.")
        s = _active(s_max, z, x)
        self.relu_map(z.storage, x.storage, s * _row_size(z))

    def relu_back(
        self, z: Tensor, h: Tensor, dldh: Tensor, s_max: Optional[int] = None
    ) -> None:
        """`z = (h > 0) * dldh` over the active rows."""
        _expect(
            z.shape[1:] == h.shape[1:] == dldh.shape[1:],
            f"Shapes {z.shape}, {h.shape}, {dldh.shape} differ.",
        )
        s = _active(s_max, z, h, dldh)
        self.relu_back_zip(z.storage, h.storage, dldh.storage, s * _row_size(z))

    def softmax(self, z: Tensor, x: Tensor, s_max: Optional[int] = None) -> None:
        """Softmax of each active row of `x` into `z`."""
        _expect(z.shape[1:] == x.shape[1:], f"Shape {z.shape} vs {x.shape}.")
        s = _active(s_max, z, x)
        self._softmax(z.storage, x.storage, _row_size(z), s)

    def softmax_back(
        self, z: Tensor, p: Tensor, dldp: Tensor, s_max: Optional[int] = None
    ) -> None:
        """Gradient through softmax given its output `p` and the gradient `dldp`."""
        _expect(
            z.shape[1:] == p.shape[1:] == dldp.shape[1:],
            f"Shapes {z.shape}, {p.shape}, {dldp.shape} differ.",
        )
        s = _active(s_max, z, p, dldp)
        self._softmax_back(z.storage, p.storage, dldp.storage, _row_size(z), s)

    def add(self, z: Tensor, x: Tensor, s_max: Optional[int] = None) -> None:
        """`z += x` over the active rows."""
        _expect(z.shape[1:] == x.shape[1:], f"Shape {z.shape} vs {x.shape}.")
        s = _active(s_max, z, x)
        self.add_zip(z.storage, z.storage, x.storage, s * _row_size(z))

    def scale(self, z: Tensor, c: float, s_max: Optional[int] = None) -> None:
        """`z *= c` over the active rows."""
        s = _active(s_max, z)
        self._scale(z.storage, float(c), s * _row_size(z))

    def fill(self, z: Tensor, c: float) -> None:
        """`z = c` over the whole allocation, ignoring any active batch size."""
        self._fill(z.storage, float(c), z.size)

    def add_scaled(self, z: Tensor, x: Tensor, s_idx: int, c: float) -> None:
        """`z += x[s_idx] * c` where `z` is shaped like one batch row of `x`."""
        _expect(x.shape[1:] == z.shape, f"Row of {x.shape} does not match {z.shape}.")
        _expect(0 <= s_idx < x.shape[0], f"Row {s_idx} out of range {x.shape}.")
        self._add_scaled(z.storage, x.storage, s_idx, float(c), z.size)

    def one_hot_add(self, z: Tensor, index: UserIndex, c: float) -> None:
        """`z[index] += c` for a single element."""
        pos = z._tensor.index(index)
        self._one_hot_add(z.storage, pos, float(c))

    def batch_sum(self, z: Tensor, s_max: Optional[int] = None) -> None:
        """Sum the active rows of `z` into row 0."""
        s = _active(s_max, z)
        if s == 0:
            return
        self._batch_sum(z.storage, _row_size(z), s)


SimpleBackend = TensorBackend(SimpleOps)
