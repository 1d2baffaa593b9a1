from __future__ import annotations

from typing import Iterable, Optional, Sequence, Union

import numpy as np
import numpy.typing as npt
from numpy import array, float64
from typing_extensions import TypeAlias


class IndexingError(RuntimeError):
    """Exception raised for indexing errors and kernel shape violations."""

    pass


Storage: TypeAlias = npt.NDArray[np.float64]
OutIndex: TypeAlias = npt.NDArray[np.int32]
Index: TypeAlias = npt.NDArray[np.int32]
Shape: TypeAlias = npt.NDArray[np.int32]
Strides: TypeAlias = npt.NDArray[np.int32]

UserIndex: TypeAlias = Sequence[int]
UserShape: TypeAlias = Sequence[int]
UserStrides: TypeAlias = Sequence[int]


def index_to_position(index: Index, strides: Strides) -> int:
    """Convert a multi-dimensional index to a single position based on strides."""
    pos = 0
    for a, b in zip(index, strides):
        pos += a * b
    return pos


def to_index(ordinal: int, shape: Shape, out_index: OutIndex) -> None:
    """Convert an ordinal value to a multi-dimensional index."""
    cur_ord = ordinal + 0
    for i in range(len(shape) - 1, -1, -1):
        sh = shape[i]
        out_index[i] = int(cur_ord % sh)
        cur_ord = cur_ord // sh


def strides_from_shape(shape: UserShape) -> UserStrides:
    """Return the row-major strides for a given shape."""
    layout = [1]
    offset = 1
    for s in reversed(shape):
        layout.append(s * offset)
        offset = s * offset
    return tuple(reversed(layout[:-1]))


class TensorData:
    """Flat row-major float storage plus its shape.

    The last dimension varies fastest, so element `(i0, ..., ik)` lives at
    `sum(i_j * strides[j])`. Storage is never copied implicitly: views built
    with `view` and `rows` share it with their parent.
    """

    _storage: Storage
    _strides: Strides
    _shape: Shape
    strides: UserStrides
    shape: UserShape
    dims: int

    def __init__(
        self,
        storage: Union[Sequence[float], Storage],
        shape: UserShape,
        strides: Optional[UserStrides] = None,
    ):
        """Initialize tensor data with storage, shape, and optional strides."""
        if isinstance(storage, np.ndarray):
            self._storage = storage
        else:
            self._storage = array(storage, dtype=float64)

        shape = tuple(int(s) for s in shape)
        if strides is None:
            strides = strides_from_shape(shape)

        assert isinstance(strides, tuple), "Strides must be tuple"
        if len(strides) != len(shape):
            raise IndexingError(f"Len of strides {strides} must match {shape}.")
        self._strides = array(strides, dtype=np.int32)
        self._shape = array(shape, dtype=np.int32)
        self.strides = strides
        self.dims = len(strides)
        self.shape = shape
        size = 1
        for i in shape:
            size *= i
        self.size = size
        if len(self._storage) != self.size:
            raise IndexingError(
                f"Storage of length {len(self._storage)} does not fit shape {shape}."
            )

    def index(self, index: Union[int, UserIndex]) -> int:
        """Convert a multi-dimensional index to a single linear position."""
        if isinstance(index, int):
            aindex: Index = array([index])
        else:
            aindex = array(index)

        if aindex.shape[0] != len(self.shape):
            raise IndexingError(f"Index {aindex} must be size of {self.shape}.")
        for i, ind in enumerate(aindex):
            if ind >= self.shape[i]:
                raise IndexingError(f"Index {aindex} out of range {self.shape}.")
            if ind < 0:
                raise IndexingError(f"Negative indexing for {aindex} not supported.")

        return int(index_to_position(aindex, self._strides))

    def indices(self) -> Iterable[UserIndex]:
        """Yield all possible indices for the tensor."""
        lshape: Shape = array(self.shape)
        out_index: Index = array(self.shape)
        for i in range(self.size):
            to_index(i, lshape, out_index)
            yield tuple(int(j) for j in out_index)

    def get(self, key: UserIndex) -> float:
        """Get the value at a specific index."""
        x: float = self._storage[self.index(key)]
        return x

    def set(self, key: UserIndex, val: float) -> None:
        """Set a value at a specific index."""
        self._storage[self.index(key)] = val

    def view(self, shape: UserShape) -> TensorData:
        """Reinterpret the same storage under a shape of equal size."""
        return TensorData(self._storage, shape)

    def rows(self, n: int) -> TensorData:
        """View of the first `n` entries along the leading (batch) dimension."""
        if self.dims == 0 or not 0 <= n <= self.shape[0]:
            raise IndexingError(f"Cannot take {n} rows of shape {self.shape}.")
        row_size = self.size // self.shape[0] if self.shape[0] else 0
        return TensorData(self._storage[: n * row_size], (n,) + self.shape[1:])

    def to_string(self) -> str:
        """Return a string representation of the tensor."""
        s = ""
        for index in self.indices():
            m = ""
            for i in range(len(index) - 1, -1, -1):
                if index[i] == 0:
                    m = "\n%s[" % ("\t" * i) + m
                else:
                    break
            s += m
            v = self.get(index)
            s += f"{v:3.2f}"
            m = ""
            for i in range(len(index) - 1, -1, -1):
                if index[i] == self.shape[i] - 1:
                    m += "]"
                else:
                    break
            if m:
                s += m
            else:
                s += " "
        return s
