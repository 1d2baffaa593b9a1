"""Kernel bodies shared by every backend.

Each kernel works on flat row-major storage with explicit index arithmetic.
The outer `prange` loop runs over independent units of work that write
disjoint output elements, so a backend is free to run it in parallel.
Reductions inside a unit always use a plain `range` loop so the summation
order, and with it the floating-point rounding, is fixed left to right.

Naming convention for sizes: `S` batch rows, `M` rows of a weight matrix,
`N` columns, `T` elements of a single batch row.

Run interpreted (see `tensor_ops.SimpleOps`) `prange` is just `range`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numba import prange

if TYPE_CHECKING:
    from typing import Callable

    from .tensor_data import Storage


def tensor_map(
    fn: Callable[[float], float],
) -> Callable[[Storage, Storage, int], None]:
    """Higher-order elementwise map over the first `n` elements ::

      out[i] = fn(a[i])

    Args:
    ----
        fn: function mapping floats-to-floats to apply.

    Returns:
    -------
        Tensor map function.

    """

    def _map(out: Storage, in_storage: Storage, n: int) -> None:
        for i in prange(n):
            out[i] = fn(in_storage[i])

    return _map


def tensor_zip(
    fn: Callable[[float, float], float],
) -> Callable[[Storage, Storage, Storage, int], None]:
    """Higher-order elementwise zip over the first `n` elements ::

      out[i] = fn(a[i], b[i])

    `out` may alias `a`, which is how in-place accumulation is done.

    Args:
    ----
        fn: function mapping two floats to float to apply.

    Returns:
    -------
        Tensor zip function.

    """

    def _zip(out: Storage, a_storage: Storage, b_storage: Storage, n: int) -> None:
        for i in prange(n):
            out[i] = fn(a_storage[i], b_storage[i])

    return _zip


def affine(
    out: Storage,
    w: Storage,
    x: Storage,
    b: Storage,
    M: int,
    N: int,
    s_max: int,
) -> None:
    """Batched affine transform ::

        for s < s_max:
          for m:
            out[s, m] = b[m] + sum_n w[m, n] * x[s, n]

    Args:
    ----
        out (Storage): storage for `out`, shape (S, M)
        w (Storage): storage for `w`, shape (M, N)
        x (Storage): storage for `x`, shape (S, N)
        b (Storage): storage for `b`, shape (M,)
        M (int): output features
        N (int): input features
        s_max (int): active batch rows

    """
    for i in prange(s_max * M):
        s = i // M
        m = i - s * M
        acc = 0.0
        for n in range(N):
            acc += w[m * N + n] * x[s * N + n]
        out[i] = b[m] + acc


def outer_add(out: Storage, x: Storage, y: Storage, M: int, N: int, s_max: int) -> None:
    """Batched outer product accumulation ::

        out[s, m, n] += x[s, m] * y[s, n]
    """
    for i in prange(s_max * M * N):
        s = i // (M * N)
        r = i - s * M * N
        m = r // N
        n = r - m * N
        out[i] += x[s * M + m] * y[s * N + n]


def transposed_matmul(
    out: Storage, x: Storage, w: Storage, M: int, N: int, s_max: int
) -> None:
    """Batched `(x^t w)^t` ::

        out[s, n] = sum_m x[s, m] * w[m, n]
    """
    for i in prange(s_max * N):
        s = i // N
        n = i - s * N
        acc = 0.0
        for m in range(M):
            acc += x[s * M + m] * w[m * N + n]
        out[i] = acc


def softmax(out: Storage, x: Storage, T: int, s_max: int) -> None:
    """Row-wise softmax, one unit of work per batch row.

    No maximum subtraction is done. A large input overflows `exp` to `inf`
    and its entry becomes `inf / inf`, which is `nan`.
    """
    for s in prange(s_max):
        row = s * T
        total = 0.0
        for j in range(T):
            total += np.exp(x[row + j])
        for j in range(T):
            out[row + j] = np.exp(x[row + j]) / total


def softmax_back(out: Storage, p: Storage, dldp: Storage, T: int, s_max: int) -> None:
    """Row-wise softmax derivative against the forward output `p` ::

        out[s, i] = sum_j dldp[s, j] * J[j, i]

    with `J[i, i] = p[i] - p[i]^2` and `J[j, i] = -p[j] * p[i]`.
    """
    for i in prange(s_max * T):
        s = i // T
        row = s * T
        k = i - row
        pk = p[i]
        acc = 0.0
        for j in range(T):
            if j == k:
                acc += dldp[row + j] * (pk - pk * pk)
            else:
                acc += dldp[row + j] * (-p[row + j] * pk)
        out[i] = acc


def scale(out: Storage, c: float, n: int) -> None:
    """`out[i] *= c` over the first `n` elements."""
    for i in prange(n):
        out[i] *= c


def fill(out: Storage, c: float, n: int) -> None:
    """`out[i] = c` over the first `n` elements."""
    for i in prange(n):
        out[i] = c


def add_scaled(out: Storage, x: Storage, s_idx: int, c: float, T: int) -> None:
    """Accumulate one batch row of `x` into an unbatched `out` ::

        out[t] += x[s_idx, t] * c
    """
    for i in prange(T):
        out[i] += x[s_idx * T + i] * c


def one_hot_add(out: Storage, pos: int, c: float) -> None:
    """`out[pos] += c` as a single unit of work."""
    for _ in prange(1):
        out[pos] += c


def batch_sum(out: Storage, T: int, s_max: int) -> None:
    """Collapse the batch dimension into row 0 ::

        out[0, t] = sum_{s < s_max} out[s, t]
    """
    for t in prange(T):
        acc = 0.0
        for s in range(s_max):
            acc += out[s * T + t]
        out[t] = acc
