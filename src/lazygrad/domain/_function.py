"""
Graph function interface definitions.

This module defines the abstract base class for operations recorded in a
computation graph. A `Function` is a two-phase capability:

1. Shape inference (`forward_shape`): given the operand shapes, compute the
   result shape or reject the operands. This phase never touches tensor
   values, so a graph can validate a whole chain of operations eagerly,
   before any numeric work or device allocation happens.
2. Numeric evaluation: `forward` maps operand values to a result value, and
   `backward` accumulates each operand's share of the result gradient into
   the operand gradient buffers.

The graph takes ownership of every function instance it records; a function
instance belongs to exactly one node.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ._shape import Shape
from ._tensor import ITensor


class Function(ABC):
    """
    Abstract base class for graph operations.

    Subclasses implement shape inference, forward evaluation and backward
    accumulation for one kind of computation, plus a diagnostic name.

    Notes
    -----
    - `forward_shape` and `forward` must be free of side effects. Leaf
      functions (zero operands) may expose stored data, but must not change
      it.
    - `backward` must accumulate (``grad += contribution``), never overwrite.
      When an operand's batch size is 1 and the result's batch size is
      greater, the per-sample contributions must be summed down to the
      operand's single sample. The graph does not perform this reduction.
    - `backward` is called once per node, with the complete lists of operand
      values and gradient buffers.
    """

    @abstractmethod
    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        """
        Infer the result shape from the operand shapes.

        Parameters
        ----------
        args : Sequence[Shape]
            Operand shapes, in operand order.

        Returns
        -------
        Shape
            Shape of the result.

        Raises
        ------
        ShapeMismatchError
            If the operands are incompatible (arity, dims or batch size).
        """
        ...

    @abstractmethod
    def forward(self, args: Sequence[ITensor]) -> ITensor:
        """
        Compute the result value.

        Parameters
        ----------
        args : Sequence[ITensor]
            Operand values, in operand order.

        Returns
        -------
        ITensor
            Result tensor. Its shape equals the shape inferred by
            `forward_shape`.
        """
        ...

    @abstractmethod
    def backward(
        self,
        cur_value: ITensor,
        cur_grad: ITensor,
        arg_values: Sequence[ITensor],
        arg_grads: Sequence[ITensor],
    ) -> None:
        """
        Accumulate operand gradients from the result gradient.

        Parameters
        ----------
        cur_value : ITensor
            Result value computed by `forward`.
        cur_grad : ITensor
            Fully accumulated gradient of the result.
        arg_values : Sequence[ITensor]
            Operand values, in operand order.
        arg_grads : Sequence[ITensor]
            Operand gradient buffers, in operand order. Contributions are
            added into these tensors in place.
        """
        ...

    @abstractmethod
    def name(self) -> str:
        """
        Return the diagnostic name of this function.

        Returns
        -------
        str
            Short name used by graph dumps and error messages.
        """
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name()}>"
