"""Feed-Forward Network Training Engine

This package trains layered feed-forward networks on top of a small library
of batched tensor kernels written against flat row-major storage.

Modules
-------

- `operators`: Scalar functions the elementwise kernels are specialised with.
- `tensor_data`: Flat storage, shapes, strides and index arithmetic.
- `tensor`: Defines the Tensor object mutated in place by the kernels.
- `tensor_functions`: Constructors for tensors and a central difference helper.
- `kernels`: Kernel bodies shared by every backend.
- `tensor_ops`: The batched primitives and the plain Python backend.
- `fast_ops`: The same primitives compiled with numba (only CPU).
- `network`: Component and loss protocols, data points and the network engine.
- `nn`: Fully-connected, ReLU and softmax components; cross-entropy and squared error losses.
- `optim`: Mini-batch stochastic gradient descent driver and accuracy.
- `datasets`: Synthetic two-class point datasets.
"""

from .tensor_data import *  # noqa: F401,F403
from .tensor import *  # noqa: F401,F403
from .tensor_ops import *  # noqa: F401,F403
from .tensor_functions import *  # noqa: F401,F403
from .fast_ops import *  # noqa: F401,F403
from .network import *  # noqa: F401,F403
from .nn import *  # noqa: F401,F403
from .optim import *  # noqa: F401,F403
from .datasets import *  # noqa: F401,F403
from . import kernels, operators  # noqa: F401,F403
