"""
Trainable parameter interface definitions.

This module defines the domain-level interface for trainable parameters. A
parameter is a standalone value/gradient tensor pair that lives outside of
any computation graph: it is read into a graph as a leaf node, receives
gradient contributions during backward differentiation, and is updated by an
optimizer afterwards.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ._shape import Shape
from ._tensor import ITensor


@runtime_checkable
class IParameter(Protocol):
    """
    Domain-level interface for trainable parameters.

    Notes
    -----
    - Parameters may be frozen or unfrozen via the `requires_grad` flag.
    - Optimizers rely on this interface to read gradients and apply updates.
    """

    @property
    def shape(self) -> Shape:
        """Return the shape of the parameter (batch size is always 1)."""
        ...

    @property
    def value(self) -> ITensor:
        """Return the current value tensor."""
        ...

    @property
    def gradient(self) -> ITensor:
        """Return the accumulated gradient tensor."""
        ...

    @property
    def requires_grad(self) -> bool:
        """
        Indicate whether this parameter should accumulate gradients.

        Returns
        -------
        bool
            True if gradients should be accumulated for this parameter,
            False if the parameter is frozen.
        """
        ...

    def reset_gradient(self) -> None:
        """Set every element of the gradient to zero."""
        ...

    def add_value(self, diff: ITensor) -> None:
        """Apply ``value <- value + diff``."""
        ...

    def add_gradient(self, diff: ITensor) -> None:
        """Apply ``gradient <- gradient + diff``."""
        ...
