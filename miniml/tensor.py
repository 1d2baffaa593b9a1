from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from . import operators
from .tensor_data import TensorData

if TYPE_CHECKING:
    from typing import List, Optional, Union

    import numpy.typing as npt

    from .tensor_data import Storage, UserIndex, UserShape
    from .tensor_ops import TensorBackend


class Tensor:
    """A flat, owned float buffer with a shape, mutated in place by the
    primitives of its backend (`t.f`).

    The leading dimension is the batch dimension wherever a primitive
    treats its operand as batched.
    """

    backend: TensorBackend
    _tensor: TensorData

    def __init__(
        self,
        v: TensorData,
        name: Optional[str] = None,
        backend: Optional[TensorBackend] = None,
    ):
        """Initializes a tensor with data, name, and backend."""
        assert isinstance(v, TensorData)
        assert backend is not None
        self._tensor = v
        self.backend = backend
        self.name = name

        self.f = backend

    def to_numpy(self) -> npt.NDArray[np.float64]:
        """Returns a copy of the tensor as a numpy array."""
        return self._tensor._storage.reshape(self.shape).copy()

    def item(self) -> float:
        """Converts a 1-element tensor to a float."""
        assert self.size == 1
        x: float = self._tensor._storage[0]
        return x

    def __repr__(self) -> str:
        """Returns a string representation of the tensor."""
        return self._tensor.to_string()

    def __getitem__(self, key: Union[int, UserIndex]) -> float:
        """Gets an item from the tensor based on the index."""
        key2 = (key,) if isinstance(key, int) else key
        return self._tensor.get(key2)

    def __setitem__(self, key: Union[int, UserIndex], val: float) -> None:
        """Sets an item in the tensor at the given index."""
        key2 = (key,) if isinstance(key, int) else key
        self._tensor.set(key2, val)

    def _new(self, tensor_data: TensorData) -> Tensor:
        """Creates a new tensor with the provided tensor data."""
        return Tensor(tensor_data, backend=self.backend)

    @staticmethod
    def make(
        storage: Union[Storage, List[float]],
        shape: UserShape,
        backend: Optional[TensorBackend] = None,
    ) -> Tensor:
        """Creates a new tensor from the provided storage and shape."""
        return Tensor(TensorData(storage, shape), backend=backend)

    def zeros(self, shape: Optional[UserShape] = None) -> Tensor:
        """Creates a tensor filled with zeros of the given shape (default: this shape)."""
        if shape is None:
            shape = self.shape
        return Tensor.make(
            np.zeros(int(operators.prod(shape)), dtype=np.float64),
            tuple(shape),
            backend=self.backend,
        )

    def copy(self) -> Tensor:
        """Returns a tensor with its own copy of the storage."""
        return Tensor.make(self._tensor._storage.copy(), self.shape, backend=self.backend)

    @property
    def storage(self) -> Storage:
        """The flat storage, shared with every view of this tensor."""
        return self._tensor._storage

    @property
    def size(self) -> int:
        """Returns the size of the tensor."""
        return self._tensor.size

    @property
    def dims(self) -> int:
        """Returns the number of dimensions."""
        return self._tensor.dims

    @property
    def shape(self) -> UserShape:
        """Returns the shape of the tensor."""
        return self._tensor.shape

    def view(self, *shape: int) -> Tensor:
        """Reshapes the tensor to the specified shape while keeping the same data."""
        return self._new(self._tensor.view(shape))

    def rows(self, n: int) -> Tensor:
        """A view of the first `n` batch rows, sharing storage with this tensor."""
        if n == self.shape[0]:
            return self
        return self._new(self._tensor.rows(n))

    def batched(self) -> Tensor:
        """A view with a leading batch dimension of 1."""
        return self.view(1, *self.shape)
