"""
Concrete trainable parameter implementation.

This module defines `Parameter`, an infrastructure-level implementation of the
domain contract `IParameter`. A `Parameter` is a standalone value/gradient
tensor pair intended to be optimized by training algorithms (e.g., SGD,
Adam). It lives outside of any graph and can be read into many graphs over
its lifetime.

Design notes
------------
- The value is read into a graph through a `ParameterInput` leaf, which
  copies it at evaluation time; the graph never aliases parameter storage.
- Gradients flow back from the graph into `gradient` by accumulation, so
  training loops reset them (`reset_gradient` / `zero_grad`) between steps.
- The `requires_grad` flag enables freezing/unfreezing parameters without
  changing the model structure.
"""

from __future__ import annotations

from typing import Any, Union

from ..domain._parameter import IParameter
from ..domain._shape import Shape
from ._tensor import Tensor
from .utils.weight_initializer import WeightInitializer


class Parameter(IParameter):
    """
    Trainable value/gradient pair.

    Parameters
    ----------
    shape : Shape
        Shape of the parameter. The batch size must be 1.
    device : IDevice
        Device that allocates the value and gradient tensors.
    requires_grad : bool, optional
        Whether this parameter should accumulate gradients. Defaults to True.

    Raises
    ------
    ValueError
        If `shape` has a batch size other than 1.

    Notes
    -----
    Both the value and the gradient start as zeros. Use `reset_value` to
    apply a weight initializer.
    """

    def __init__(self, shape: Shape, device: Any, *, requires_grad: bool = True) -> None:
        if shape.batch_size() != 1:
            raise ValueError(
                f"The batch size of the parameter shape should be 1. Given shape: {shape}"
            )
        self._shape = Shape(shape.dims())
        self._device = device
        self._value: Tensor = device.constant(self._shape, 0)
        self._grad: Tensor = device.constant(self._shape, 0)
        self._requires_grad: bool = bool(requires_grad)

    def __repr__(self) -> str:
        return f"Parameter(shape={self._shape}, device={self._device})"

    @property
    def shape(self) -> Shape:
        """Return the shape of the parameter."""
        return self._shape

    @property
    def device(self) -> Any:
        """Return the device that owns the parameter storage."""
        return self._device

    @property
    def value(self) -> Tensor:
        """Return the current value tensor."""
        return self._value

    @property
    def gradient(self) -> Tensor:
        """Return the accumulated gradient tensor."""
        return self._grad

    @property
    def requires_grad(self) -> bool:
        """
        Indicate whether this parameter should accumulate gradients.

        Returns
        -------
        bool
            True if gradients should be accumulated, False if frozen.
        """
        return self._requires_grad

    @requires_grad.setter
    def requires_grad(self, value: bool) -> None:
        self._requires_grad = bool(value)

    def reset_value(
        self, initializer: Union[str, WeightInitializer], *args: Any, **kwargs: Any
    ) -> None:
        """
        Set all values using a weight initializer.

        Parameters
        ----------
        initializer : str or WeightInitializer
            Registered rule name (e.g., ``"xavier_uniform"``) or an
            initializer with its arguments already bound.
        *args, **kwargs
            Arguments of a named rule (e.g., the fill value of
            ``"constant"``).

        Raises
        ------
        ValueError
            If the name is not registered, or arguments are given together
            with a bound initializer.
        """
        if isinstance(initializer, str):
            initializer = WeightInitializer(initializer, *args, **kwargs)
        elif args or kwargs:
            raise ValueError(f"{initializer!r} already has its arguments bound")
        initializer(self._value)

    def reset_gradient(self) -> None:
        """Set all gradients to 0."""
        self._grad.copy_from(self._device.constant(self._shape, 0))

    def zero_grad(self) -> None:
        """Alias of `reset_gradient`, used by optimizers."""
        self.reset_gradient()

    def add_value(self, diff: Tensor) -> None:
        """
        Update the value in place: ``value <- value + diff``.

        Raises
        ------
        ShapeMismatchError
            If `diff` does not match the parameter shape.
        """
        self._value.add_(diff)

    def add_gradient(self, diff: Tensor) -> None:
        """
        Update the gradient in place: ``gradient <- gradient + diff``.

        Raises
        ------
        ShapeMismatchError
            If `diff` does not match the parameter shape.
        """
        self._grad.add_(diff)
