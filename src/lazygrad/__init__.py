"""
lazygrad: lazily evaluated computation graphs with reverse-mode
differentiation.

Public API
----------
- `Shape`, `Graph`, `Node`, `Function`
- `CPUDevice`, `get_device`, `Tensor`
- `Parameter`, `WeightInitializer`, `register_initializer`,
  `available_initializers`, `SGD`, `Adam`
- `F`: functional node builders (``F.input``, ``F.matmul``, ...)
- Errors: `ShapeMismatchError`, `GraphMismatchError`,
  `NodeNotCalculatedError`, `GradientAlreadyExistsError`
"""

from .domain._errors import (
    DeviceMismatchError,
    DeviceNotSupportedError,
    GradientAlreadyExistsError,
    GraphMismatchError,
    NodeNotCalculatedError,
    ShapeMismatchError,
)
from .domain._function import Function
from .domain._shape import Shape
from .infrastructure import _node_ops as F
from .infrastructure._device import CPUDevice, get_device
from .infrastructure._graph import Graph, Node
from .infrastructure._optimizers import SGD, Adam
from .infrastructure._parameter import Parameter
from .infrastructure._tensor import Tensor
from .infrastructure.utils.weight_initializer import (
    WeightInitializer,
    available_initializers,
    register_initializer,
)

__all__ = [
    Shape.__name__,
    Graph.__name__,
    Node.__name__,
    Function.__name__,
    CPUDevice.__name__,
    get_device.__name__,
    Tensor.__name__,
    Parameter.__name__,
    WeightInitializer.__name__,
    register_initializer.__name__,
    available_initializers.__name__,
    SGD.__name__,
    Adam.__name__,
    "F",
    ShapeMismatchError.__name__,
    GraphMismatchError.__name__,
    NodeNotCalculatedError.__name__,
    GradientAlreadyExistsError.__name__,
    DeviceNotSupportedError.__name__,
    DeviceMismatchError.__name__,
]
