"""
Tensor interface definitions.

This module defines the minimal tensor capability that the computation
graph relies on, using structural typing. The graph engine never interprets
tensor contents: it only checks validity, accumulates gradients in place, and
reaches the owning device to create constant-filled tensors.

Concrete operations (the function library) are free to use a richer,
backend-specific tensor API.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ._device import IDevice
    from ._shape import Shape


@runtime_checkable
class ITensor(Protocol):
    """
    Tensor interface.

    An `ITensor` is an opaque value-bearing container with a `Shape`, stored
    on a device.

    Notes
    -----
    - `valid()` distinguishes a tensor that holds data from an empty
      placeholder.
    - `add_` is the in-place accumulation used for gradient buffers; it must
      mutate the receiver and never rebind storage owned by someone else.
    """

    @property
    def shape(self) -> "Shape":
        """
        Return the shape of the tensor.

        Returns
        -------
        Shape
            The tensor's shape, including its batch size.
        """
        ...

    @property
    def device(self) -> "IDevice":
        """
        Return the device on which this tensor resides.

        Returns
        -------
        IDevice
            The device that allocated this tensor.
        """
        ...

    def valid(self) -> bool:
        """
        Indicate whether this tensor holds data.

        Returns
        -------
        bool
            True if a value has been assigned, False for an empty tensor.
        """
        ...

    def add_(self, other: "ITensor") -> "ITensor":
        """
        Accumulate `other` into this tensor in place.

        Parameters
        ----------
        other : ITensor
            Tensor with the same dims and a compatible batch size.

        Returns
        -------
        ITensor
            This tensor.
        """
        ...
