"""
Device abstraction contracts.

This module defines the device categories known to lazygrad and the
duck-typed `IDevice` protocol through which the graph engine reaches the
tensor backend. The engine never allocates memory itself: whenever it needs
a new buffer (gradient seeds, zero-initialized gradient accumulators) it asks
the device associated with an already realized value tensor.

The protocol avoids any backend-specific dependency and is suitable for use
across the domain and infrastructure layers.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ._shape import Shape
    from ._tensor import ITensor


class DeviceType(Enum):
    """
    Enumeration of device categories.

    Attributes
    ----------
    CPU : DeviceType
        Central Processing Unit.
    CUDA : DeviceType
        NVIDIA CUDA-enabled GPU. Recognized by name only; no backend exists.
    """

    CPU = "cpu"
    CUDA = "cuda"


@runtime_checkable
class IDevice(Protocol):
    """
    Duck-typed device contract.

    Any object that provides these members can act as the storage and
    constant-tensor factory for tensors.
    """

    @property
    def type(self) -> DeviceType: ...

    def is_cpu(self) -> bool: ...

    def constant(self, shape: "Shape", k: float) -> "ITensor":
        """
        Create a tensor of `shape` with every element set to `k`.

        Parameters
        ----------
        shape : Shape
            Shape (including batch size) of the new tensor.
        k : float
            Fill value.

        Returns
        -------
        ITensor
            A newly allocated, valid tensor.
        """
        ...

    def new_tensor(self, shape: "Shape", values: Any) -> "ITensor":
        """
        Create a tensor of `shape` holding `values`.
        """
        ...

    def __str__(self) -> str: ...
