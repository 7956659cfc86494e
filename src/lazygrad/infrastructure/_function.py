"""
Concrete graph functions (NumPy backend).

This module implements the operations that can be recorded in a `Graph`.
Each operation is a `Function` subclass providing:

- `forward_shape`: eager shape inference and validation,
- `forward`: value computation on NumPy-backed tensors,
- `backward`: in-place accumulation of operand gradients,
- `name`: a short diagnostic name.

Broadcasting
------------
Element-wise and matrix operations accept operands whose batch sizes are
equal or 1. Operand gradients always keep the operand's own shape: when an
operand of batch size 1 was repeated across a larger batch, the per-sample
contributions are summed back down (see `_accumulate`).

Notes
-----
- All computations are CPU-only and read/write tensor storage directly via
  `Tensor.data`.
- Tensor storage is laid out as ``(batch, *dims)``. Axis ``d`` of a shape is
  array axis ``d + 1``.
"""

from __future__ import annotations

from typing import Any, Sequence, Tuple

import numpy as np

from ..domain._errors import ShapeMismatchError
from ..domain._function import Function
from ..domain._shape import Shape
from ._tensor import Tensor


def _check_arity(fn: Function, args: Sequence[Shape], n: int) -> None:
    if len(args) != n:
        raise ShapeMismatchError(
            fn.name(), args, f"expected {n} argument(s), got {len(args)}"
        )


def _wrap(shape: Shape, like: Tensor, arr: np.ndarray) -> Tensor:
    """Create a tensor of `shape` on the device of `like` holding `arr`."""
    arr = np.ascontiguousarray(arr, dtype=like.dtype).reshape(Tensor.layout(shape))
    return Tensor(shape, like.device, arr)


def _expand(arr: np.ndarray, shape: Shape, ndim: int) -> np.ndarray:
    """View storage of `shape` with exactly `ndim` per-sample axes."""
    return arr.reshape((arr.shape[0],) + tuple(shape[i] for i in range(ndim)))


def _accumulate(grad: Tensor, contribution: np.ndarray) -> None:
    """
    Add `contribution` into the gradient buffer `grad` in place.

    Parameters
    ----------
    grad : Tensor
        Operand gradient buffer.
    contribution : np.ndarray
        Contribution with the batch axis first and the same number of
        per-sample elements as `grad`. If `grad` has batch size 1 and the
        contribution has more samples, they are summed.
    """
    data = grad.data
    contribution = contribution.reshape((contribution.shape[0],) + data.shape[1:])
    if contribution.shape[0] != data.shape[0] and data.shape[0] == 1:
        contribution = contribution.sum(axis=0, keepdims=True)
    data += contribution


def _merged_batch(fn: Function, args: Sequence[Shape]) -> int:
    """Return the broadcast batch size of `args` or raise."""
    k = 1
    for s in args:
        if s.batch_size() == 1:
            continue
        if k != 1 and k != s.batch_size():
            raise ShapeMismatchError(fn.name(), args, "incompatible batch sizes")
        k = s.batch_size()
    return k


class Input(Function):
    """
    Leaf function exposing constant data.

    Parameters
    ----------
    shape : Shape
        Shape (including batch size) of the data.
    values : array_like
        ``shape.num_total_elements()`` values in ``(batch, *dims)`` C order.
    device : IDevice
        Device that allocates the value tensor.

    Raises
    ------
    ValueError
        If the number of values does not match `shape`.
    """

    def __init__(self, shape: Shape, values: Any, device: Any) -> None:
        self._shape = Shape(shape.dims(), shape.batch_size())
        self._values = np.array(values)
        self._device = device
        if self._values.size != self._shape.num_total_elements():
            raise ValueError(
                f"Data sizes mismatched. values: {self._values.size} "
                f"!= shape: {self._shape.num_total_elements()} ({self._shape})"
            )

    def name(self) -> str:
        return "Input"

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        _check_arity(self, args, 0)
        return self._shape

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        return self._device.new_tensor(self._shape, self._values)

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        pass


class ParameterInput(Function):
    """
    Leaf function reading a `Parameter` into the graph.

    The node value is a copy of the parameter value taken at evaluation
    time. During differentiation the node gradient is added into the
    parameter gradient (unless the parameter is frozen).
    """

    def __init__(self, param: Any) -> None:
        self._param = param

    def name(self) -> str:
        return "ParameterInput"

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        _check_arity(self, args, 0)
        s = self._param.shape
        return Shape(s.dims(), s.batch_size())

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        return self._param.value.copy()

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        if self._param.requires_grad:
            self._param.add_gradient(cur_grad)


class _UnaryFunction(Function):
    """Element-wise function of one operand; the shape is preserved."""

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        _check_arity(self, args, 1)
        return args[0]

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        (x,) = args
        return _wrap(x.shape, x, self._forward(x.data))

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        (x,) = arg_values
        _accumulate(arg_grads[0], self._backward(x.data, cur_value.data, cur_grad.data))

    def _forward(self, x: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _backward(self, x: np.ndarray, y: np.ndarray, gy: np.ndarray) -> np.ndarray:
        raise NotImplementedError


class Negative(_UnaryFunction):
    """``y = -x``"""

    def name(self) -> str:
        return "Negative"

    def _forward(self, x):
        return -x

    def _backward(self, x, y, gy):
        return -gy


class AddConst(_UnaryFunction):
    """``y = x + k``"""

    def __init__(self, k: float) -> None:
        self._k = float(k)

    def name(self) -> str:
        return f"AddConst({self._k})"

    def _forward(self, x):
        return x + self._k

    def _backward(self, x, y, gy):
        return gy


class MultiplyConst(_UnaryFunction):
    """``y = k * x``"""

    def __init__(self, k: float) -> None:
        self._k = float(k)

    def name(self) -> str:
        return f"MultiplyConst({self._k})"

    def _forward(self, x):
        return self._k * x

    def _backward(self, x, y, gy):
        return self._k * gy


class Square(_UnaryFunction):
    """``y = x^2``, ``dy/dx = 2x``"""

    def name(self) -> str:
        return "Square"

    def _forward(self, x):
        return x * x

    def _backward(self, x, y, gy):
        return 2 * x * gy


class Exp(_UnaryFunction):
    """``y = exp(x)``, ``dy/dx = y``"""

    def name(self) -> str:
        return "Exp"

    def _forward(self, x):
        return np.exp(x)

    def _backward(self, x, y, gy):
        return y * gy


class Tanh(_UnaryFunction):
    """``y = tanh(x)``, ``dy/dx = 1 - y^2``"""

    def name(self) -> str:
        return "Tanh"

    def _forward(self, x):
        return np.tanh(x)

    def _backward(self, x, y, gy):
        return (1 - y * y) * gy


class Sigmoid(_UnaryFunction):
    """``y = 1 / (1 + exp(-x))``, ``dy/dx = y (1 - y)``"""

    def name(self) -> str:
        return "Sigmoid"

    def _forward(self, x):
        # Equivalent to 1 / (1 + exp(-x)) without overflow for large |x|.
        return 0.5 + 0.5 * np.tanh(0.5 * x)

    def _backward(self, x, y, gy):
        return y * (1 - y) * gy


class ReLU(_UnaryFunction):
    """``y = max(x, 0)``"""

    def name(self) -> str:
        return "ReLU"

    def _forward(self, x):
        return np.maximum(x, 0)

    def _backward(self, x, y, gy):
        return (x > 0) * gy


class _BinaryFunction(Function):
    """
    Element-wise function of two operands.

    Both operands must have the same dims and compatible batch sizes; the
    result takes the larger batch size.
    """

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        _check_arity(self, args, 2)
        a, b = args
        if not a.has_same_dims(b) or not a.has_compatible_batch(b):
            raise ShapeMismatchError(self.name(), args)
        return a.resize_batch(max(a.batch_size(), b.batch_size()))

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        a, b = args
        shape = self.forward_shape([a.shape, b.shape])
        return _wrap(shape, a, self._forward(a.data, b.data))

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        a, b = arg_values
        ga, gb = self._backward(a.data, b.data, cur_value.data, cur_grad.data)
        _accumulate(arg_grads[0], ga)
        _accumulate(arg_grads[1], gb)

    def _forward(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _backward(
        self, a: np.ndarray, b: np.ndarray, y: np.ndarray, gy: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        raise NotImplementedError


class Add(_BinaryFunction):
    """``y = a + b``"""

    def name(self) -> str:
        return "Add"

    def _forward(self, a, b):
        return a + b

    def _backward(self, a, b, y, gy):
        return gy, gy


class Subtract(_BinaryFunction):
    """``y = a - b``"""

    def name(self) -> str:
        return "Subtract"

    def _forward(self, a, b):
        return a - b

    def _backward(self, a, b, y, gy):
        return gy, -gy


class Multiply(_BinaryFunction):
    """``y = a * b`` (element-wise)"""

    def name(self) -> str:
        return "Multiply"

    def _forward(self, a, b):
        return a * b

    def _backward(self, a, b, y, gy):
        return gy * b, gy * a


class Divide(_BinaryFunction):
    """``y = a / b`` (element-wise)"""

    def name(self) -> str:
        return "Divide"

    def _forward(self, a, b):
        return a / b

    def _backward(self, a, b, y, gy):
        ga = gy / b
        return ga, -ga * y


class Transpose(Function):
    """Matrix transpose: ``[n, m] -> [m, n]``."""

    def name(self) -> str:
        return "Transpose"

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        _check_arity(self, args, 1)
        (s,) = args
        if s.depth() > 2:
            raise ShapeMismatchError(self.name(), args, "operand is not a matrix")
        return Shape([s[1], s[0]], s.batch_size())

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        (x,) = args
        shape = self.forward_shape([x.shape])
        return _wrap(shape, x, _expand(x.data, x.shape, 2).swapaxes(1, 2))

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        gy = _expand(cur_grad.data, cur_grad.shape, 2)
        _accumulate(arg_grads[0], gy.swapaxes(1, 2))


class MatrixMultiply(Function):
    """Matrix product: ``[n, m] x [m, p] -> [n, p]``."""

    def name(self) -> str:
        return "MatrixMultiply"

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        _check_arity(self, args, 2)
        a, b = args
        if (
            a.depth() > 2
            or b.depth() > 2
            or a[1] != b[0]
            or not a.has_compatible_batch(b)
        ):
            raise ShapeMismatchError(self.name(), args)
        return Shape([a[0], b[1]], max(a.batch_size(), b.batch_size()))

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        a, b = args
        shape = self.forward_shape([a.shape, b.shape])
        out = np.matmul(_expand(a.data, a.shape, 2), _expand(b.data, b.shape, 2))
        return _wrap(shape, a, out)

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        a, b = arg_values
        am = _expand(a.data, a.shape, 2)
        bm = _expand(b.data, b.shape, 2)
        gy = _expand(cur_grad.data, cur_grad.shape, 2)
        _accumulate(arg_grads[0], np.matmul(gy, bm.swapaxes(1, 2)))
        _accumulate(arg_grads[1], np.matmul(am.swapaxes(1, 2), gy))


class Sum(Function):
    """Sum along axis `dim`; the axis is reduced to extent 1."""

    def __init__(self, dim: int) -> None:
        self._dim = int(dim)

    def name(self) -> str:
        return f"Sum(dim={self._dim})"

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        _check_arity(self, args, 1)
        return args[0].resize_dim(self._dim, 1)

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        (x,) = args
        ndim = max(x.shape.depth(), self._dim + 1)
        out = _expand(x.data, x.shape, ndim).sum(axis=self._dim + 1, keepdims=True)
        return _wrap(x.shape.resize_dim(self._dim, 1), x, out)

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        (x,) = arg_values
        ndim = max(x.shape.depth(), self._dim + 1)
        target = (cur_grad.data.shape[0],) + tuple(x.shape[i] for i in range(ndim))
        gy = _expand(cur_grad.data, cur_grad.shape, ndim)
        _accumulate(arg_grads[0], np.broadcast_to(gy, target))


class Broadcast(Function):
    """Repeat axis `dim` (which must have extent 1) `size` times."""

    def __init__(self, dim: int, size: int) -> None:
        self._dim = int(dim)
        self._size = int(size)

    def name(self) -> str:
        return f"Broadcast(dim={self._dim},size={self._size})"

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        _check_arity(self, args, 1)
        (s,) = args
        if s[self._dim] != 1 or self._size < 1:
            raise ShapeMismatchError(
                self.name(), args, f"axis {self._dim} must have extent 1"
            )
        return s.resize_dim(self._dim, self._size)

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        (x,) = args
        shape = self.forward_shape([x.shape])
        ndim = max(shape.depth(), self._dim + 1)
        src = _expand(x.data, x.shape, ndim)
        target = (src.shape[0],) + tuple(shape[i] for i in range(ndim))
        return _wrap(shape, x, np.broadcast_to(src, target))

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        ndim = max(cur_grad.shape.depth(), self._dim + 1)
        gy = _expand(cur_grad.data, cur_grad.shape, ndim)
        _accumulate(arg_grads[0], gy.sum(axis=self._dim + 1, keepdims=True))


class Slice(Function):
    """Take ``[lower, upper)`` along axis `dim`."""

    def __init__(self, dim: int, lower: int, upper: int) -> None:
        self._dim = int(dim)
        self._lower = int(lower)
        self._upper = int(upper)

    def name(self) -> str:
        return f"Slice(dim={self._dim},lower={self._lower},upper={self._upper})"

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        _check_arity(self, args, 1)
        (s,) = args
        if not 0 <= self._lower < self._upper <= s[self._dim]:
            raise ShapeMismatchError(self.name(), args, "invalid slice range")
        return s.resize_dim(self._dim, self._upper - self._lower)

    def _index(self) -> tuple:
        return (slice(None),) * (self._dim + 1) + (slice(self._lower, self._upper),)

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        (x,) = args
        ndim = max(x.shape.depth(), self._dim + 1)
        out = _expand(x.data, x.shape, ndim)[self._index()]
        return _wrap(self.forward_shape([x.shape]), x, out)

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        (x,) = arg_values
        ndim = max(x.shape.depth(), self._dim + 1)
        gy = cur_grad.data
        contribution = np.zeros(
            (gy.shape[0],) + tuple(x.shape[i] for i in range(ndim)), dtype=gy.dtype
        )
        contribution[self._index()] = _expand(gy, cur_grad.shape, ndim)
        _accumulate(arg_grads[0], contribution)


class Concat(Function):
    """
    Concatenate any number of operands along axis `dim`.

    All operands must agree on every axis except `dim`, and their batch sizes
    must be broadcast-compatible.
    """

    def __init__(self, dim: int) -> None:
        self._dim = int(dim)

    def name(self) -> str:
        return f"Concat(dim={self._dim})"

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        if not args:
            raise ShapeMismatchError(self.name(), args, "no arguments")
        first = args[0]
        total = 0
        for s in args:
            if not first.has_same_loo_dims(s, self._dim):
                raise ShapeMismatchError(self.name(), args)
            total += s[self._dim]
        k = _merged_batch(self, args)
        return first.resize_dim(self._dim, total).resize_batch(k)

    def _ndim(self, shapes: Sequence[Shape]) -> int:
        return max([self._dim + 1] + [s.depth() for s in shapes])

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        shapes = [x.shape for x in args]
        shape = self.forward_shape(shapes)
        ndim = self._ndim(shapes)
        k = shape.batch_size()
        parts = []
        for x in args:
            e = _expand(x.data, x.shape, ndim)
            parts.append(np.broadcast_to(e, (k,) + e.shape[1:]))
        return _wrap(shape, args[0], np.concatenate(parts, axis=self._dim + 1))

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        shapes = [x.shape for x in arg_values]
        ndim = self._ndim(shapes)
        gy = _expand(cur_grad.data, cur_grad.shape, ndim)
        offset = 0
        for s, g in zip(shapes, arg_grads):
            width = s[self._dim]
            index = (slice(None),) * (self._dim + 1) + (slice(offset, offset + width),)
            _accumulate(g, gy[index])
            offset += width


class BatchSum(Function):
    """Sum over the batch: ``[...]xk -> [...]x1``."""

    def name(self) -> str:
        return "BatchSum"

    def forward_shape(self, args: Sequence[Shape]) -> Shape:
        _check_arity(self, args, 1)
        return args[0].resize_batch(1)

    def forward(self, args: Sequence[Tensor]) -> Tensor:
        (x,) = args
        return _wrap(x.shape.resize_batch(1), x, x.data.sum(axis=0, keepdims=True))

    def backward(self, cur_value, cur_grad, arg_values, arg_grads) -> None:
        (x,) = arg_values
        _accumulate(arg_grads[0], np.broadcast_to(cur_grad.data, x.data.shape))
