from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar, Any

from numba import njit as _njit

from . import kernels
from .tensor_ops import TensorBackend, TensorOps

if TYPE_CHECKING:
    from typing import Callable

    from .tensor_data import Storage

# TIP: Use `NUMBA_DISABLE_JIT=1 pytest tests/` to run these kernels without JIT.

# This code will JIT compile the kernel bodies from `kernels.py`. If you get
# an error, read the docs for NUMBA as to what is allowed in these functions.
Fn = TypeVar("Fn")


def njit(fn: Fn, **kwargs: Any) -> Fn:
    """Applies JIT compilation to the given function, with the option
    to always inline the function.

    Args:
    ----
        fn (Fn): The function to be compiled.
        **kwargs (Any): Additional options for JIT compilation.

    Returns:
    -------
        Fn: The compiled function with inlining and other specified options applied.

    """
    return _njit(inline="always", **kwargs)(fn)  # type: ignore


class FastOps(TensorOps):
    """Compiles every kernel with numba so the outer `prange` runs across threads.

    Optimizations:

    * Main loop in parallel
    * No index buffers, positions come from explicit arithmetic
    * Inner reductions are sequential and write only local variables
    """

    @staticmethod
    def map(fn: Callable[[float], float]) -> Callable[[Storage, Storage, int], None]:
        """See `tensor_ops.py`"""
        # This line JIT compiles the scalar function into the map kernel
        return njit(kernels.tensor_map(njit(fn)), parallel=True)

    @staticmethod
    def zip(
        fn: Callable[[float, float], float],
    ) -> Callable[[Storage, Storage, Storage, int], None]:
        """See `tensor_ops.py`"""
        return njit(kernels.tensor_zip(njit(fn)), parallel=True)

    @staticmethod
    def kernel(fn: Callable[..., None]) -> Callable[..., None]:
        """See `tensor_ops.py`"""
        return njit(fn, parallel=True)


FastTensorBackend = TensorBackend(FastOps)
