"""
Xavier/Glorot weight initializers.

``xavier`` draws from ``N(0, 2 / (fan_in + fan_out))`` and
``xavier_uniform`` from ``U(-b, b)`` with ``b = sqrt(6 / (fan_in + fan_out))``.
Fans follow the matrix convention ``[out, in]`` of ``W @ x``.
"""

import math
from typing import Sequence, Tuple

from ._base import register_initializer
from ..._tensor import Tensor


def fan_in_and_fan_out(dims: Sequence[int]) -> Tuple[int, int]:
    """
    Return ``(fan_in, fan_out)`` for stored parameter extents.

    ``[n, m]`` maps ``m`` inputs to ``n`` outputs, a vector ``[n]`` is one
    input to ``n`` outputs and a scalar is ``(1, 1)``. Axes past the second
    scale both fans.
    """
    dims = [int(d) for d in dims]
    if not dims:
        return 1, 1
    if len(dims) == 1:
        return 1, dims[0]
    rest = math.prod(dims[2:])
    return dims[1] * rest, dims[0] * rest


def _fan_sum(tensor: Tensor) -> float:
    fan_in, fan_out = fan_in_and_fan_out(tensor.shape.dims())
    return float(max(1, fan_in) + max(1, fan_out))


@register_initializer("xavier")
def xavier(tensor: Tensor) -> Tensor:
    """Fill `tensor` from a zero-mean normal with ``std = sqrt(2 / fans)``."""
    std = math.sqrt(2.0 / _fan_sum(tensor))
    tensor.copy_from(tensor.device.random_normal(tensor.shape, 0.0, std))
    return tensor


@register_initializer("xavier_uniform")
def xavier_uniform(tensor: Tensor) -> Tensor:
    """Fill `tensor` from ``U(-b, b)`` with ``b = sqrt(6 / fans)``."""
    bound = math.sqrt(6.0 / _fan_sum(tensor))
    tensor.copy_from(tensor.device.random_uniform(tensor.shape, -bound, bound))
    return tensor
