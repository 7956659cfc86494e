"""
Concrete Tensor implementation (NumPy backend).

This module provides a concrete `Tensor` that satisfies the domain-level
`ITensor` protocol. A tensor pairs a `Shape` (per-sample extents plus batch
size) with the device that allocated it and a NumPy array laid out as
``(batch_size, *shape.dims())``.

Design notes
------------
- Tensors are created by a device (`CPUDevice.constant`,
  `CPUDevice.new_tensor`, ...). `Tensor()` with no arguments is an empty,
  invalid placeholder.
- Binary arithmetic requires identical per-sample dims and broadcasts over
  the batch axis only: a batch size of 1 is repeated across the other
  operand's batch.
- In-place accumulation (`add_`, ``+=``) never changes the receiver's shape;
  contributions with a larger batch must be reduced by the caller first.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Union

import numpy as np

from ..domain._errors import DeviceMismatchError, ShapeMismatchError
from ..domain._shape import Shape
from ..domain._tensor import ITensor

Number = Union[int, float]


class Tensor(ITensor):
    """
    NumPy-backed tensor.

    Parameters
    ----------
    shape : Shape, optional
        Shape of the tensor. Omitted for an invalid placeholder.
    device : IDevice, optional
        Device that owns the storage.
    data : np.ndarray, optional
        Storage with layout ``(batch_size, *shape.dims())``. The array is
        adopted without copying.

    Raises
    ------
    ValueError
        If only some of the arguments are given, or if `data` does not match
        the layout of `shape`.
    """

    __slots__ = ("_shape", "_device", "_data")

    def __init__(
        self,
        shape: Optional[Shape] = None,
        device: Any = None,
        data: Optional[np.ndarray] = None,
    ) -> None:
        given = (shape is not None, device is not None, data is not None)
        if any(given) and not all(given):
            raise ValueError("shape, device and data must be given together")
        if data is not None and tuple(data.shape) != Tensor.layout(shape):
            raise ValueError(
                f"Data layout {tuple(data.shape)} does not match shape {shape}"
            )
        self._shape = shape
        self._device = device
        self._data = data

    @staticmethod
    def layout(shape: Shape) -> tuple[int, ...]:
        """
        Return the NumPy array shape used to store a tensor of `shape`.

        Parameters
        ----------
        shape : Shape
            Tensor shape.

        Returns
        -------
        tuple[int, ...]
            ``(batch_size, *dims)``.
        """
        return (shape.batch_size(),) + shape.dims()

    def valid(self) -> bool:
        """Return True if this tensor holds data."""
        return self._data is not None

    def _check_valid(self) -> None:
        if self._data is None:
            raise ValueError("Invalid tensor: no value has been assigned")

    @property
    def shape(self) -> Shape:
        """
        Return the tensor shape.

        Raises
        ------
        ValueError
            If the tensor is invalid.
        """
        self._check_valid()
        return self._shape

    @property
    def device(self) -> Any:
        """Return the device that allocated this tensor."""
        self._check_valid()
        return self._device

    @property
    def dtype(self) -> np.dtype:
        """Return the element type of the storage."""
        self._check_valid()
        return self._data.dtype

    @property
    def data(self) -> np.ndarray:
        """
        Return the underlying storage (not a copy).

        Returns
        -------
        np.ndarray
            Array with layout ``(batch_size, *dims)``.
        """
        self._check_valid()
        return self._data

    def to_numpy(self) -> np.ndarray:
        """Return a copy of the storage."""
        self._check_valid()
        return self._data.copy()

    def to_list(self) -> list[float]:
        """Return all elements as a flat list, batch-major in C order."""
        self._check_valid()
        return [float(x) for x in self._data.ravel()]

    def to_float(self) -> float:
        """
        Return the single element of a one-element tensor.

        Raises
        ------
        ValueError
            If the tensor holds more than one element.
        """
        self._check_valid()
        if self._shape.num_total_elements() != 1:
            raise ValueError(f"Tensor of shape {self._shape} is not a scalar")
        return float(self._data.ravel()[0])

    def copy(self) -> "Tensor":
        """Return a deep copy sharing only the device."""
        if self._data is None:
            return Tensor()
        shape = Shape(self._shape.dims(), self._shape.batch_size())
        return Tensor(shape, self._device, self._data.copy())

    def copy_from(self, other: "Tensor") -> None:
        """
        Overwrite this tensor's elements with those of `other`.

        Raises
        ------
        ShapeMismatchError
            If the shapes differ.
        """
        self._check_valid()
        other._check_valid()
        if self._shape != other._shape:
            raise ShapeMismatchError("copy_from", [self._shape, other._shape])
        np.copyto(self._data, other._data, casting="unsafe")

    def __repr__(self) -> str:
        if self._data is None:
            return "Tensor(<invalid>)"
        return f"Tensor(shape={self._shape}, device={self._device}, dtype={self._data.dtype})"

    def _check_operand(self, other: "Tensor", op: str) -> Shape:
        """Validate a tensor operand and return the broadcast result shape."""
        self._check_valid()
        other._check_valid()
        if other._device is not self._device:
            raise DeviceMismatchError(repr(self._device), repr(other._device))
        a, b = self._shape, other._shape
        if not a.has_same_dims(b) or not a.has_compatible_batch(b):
            raise ShapeMismatchError(op, [a, b])
        return a.resize_batch(max(a.batch_size(), b.batch_size()))

    def add_(self, other: "Tensor") -> "Tensor":
        """
        Accumulate `other` into this tensor in place.

        Parameters
        ----------
        other : Tensor
            Tensor with the same dims. Its batch size must equal this
            tensor's, or be 1 (repeated across the batch).

        Returns
        -------
        Tensor
            This tensor.

        Raises
        ------
        ShapeMismatchError
            If `other` is incompatible or would grow the batch size.
        """
        result = self._check_operand(other, "add_")
        if result != self._shape:
            raise ShapeMismatchError(
                "add_", [self._shape, other._shape], "cannot accumulate a larger batch"
            )
        self._data += other._data
        return self

    def sub_(self, other: "Tensor") -> "Tensor":
        """In-place counterpart of `add_` for subtraction."""
        result = self._check_operand(other, "sub_")
        if result != self._shape:
            raise ShapeMismatchError(
                "sub_", [self._shape, other._shape], "cannot accumulate a larger batch"
            )
        self._data -= other._data
        return self

    def __iadd__(self, other: "Tensor") -> "Tensor":
        return self.add_(other)

    def __isub__(self, other: "Tensor") -> "Tensor":
        return self.sub_(other)

    def _binary(
        self,
        other: Union["Tensor", Number],
        fn: Callable[[np.ndarray, Any], np.ndarray],
        op: str,
    ) -> "Tensor":
        if isinstance(other, Tensor):
            shape = self._check_operand(other, op)
            out = fn(self._data, other._data)
        elif isinstance(other, (int, float)):
            self._check_valid()
            shape = self._shape
            out = fn(self._data, other)
        else:
            return NotImplemented
        return Tensor(shape, self._device, np.asarray(out, dtype=self._data.dtype))

    def __add__(self, other: Union["Tensor", Number]) -> "Tensor":
        return self._binary(other, np.add, "add")

    def __radd__(self, other: Number) -> "Tensor":
        return self._binary(other, lambda a, b: b + a, "add")

    def __sub__(self, other: Union["Tensor", Number]) -> "Tensor":
        return self._binary(other, np.subtract, "subtract")

    def __rsub__(self, other: Number) -> "Tensor":
        return self._binary(other, lambda a, b: b - a, "subtract")

    def __mul__(self, other: Union["Tensor", Number]) -> "Tensor":
        return self._binary(other, np.multiply, "multiply")

    def __rmul__(self, other: Number) -> "Tensor":
        return self._binary(other, lambda a, b: b * a, "multiply")

    def __truediv__(self, other: Union["Tensor", Number]) -> "Tensor":
        return self._binary(other, np.divide, "divide")

    def __rtruediv__(self, other: Number) -> "Tensor":
        return self._binary(other, lambda a, b: b / a, "divide")

    def __neg__(self) -> "Tensor":
        self._check_valid()
        return Tensor(self._shape, self._device, -self._data)

    def sqrt(self) -> "Tensor":
        """Return the elementwise square root."""
        self._check_valid()
        return Tensor(self._shape, self._device, np.sqrt(self._data))
