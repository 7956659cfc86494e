"""
Constant weight initializers.

Provided initializers
---------------------
- ``zeros``: every element set to zero.
- ``ones``: every element set to one.
- ``constant``: every element set to a given value.

These initializers are typically used for bias parameters, testing, or
deterministic setups.
"""

from ._base import register_initializer
from ..._tensor import Tensor


@register_initializer("constant")
def constant(tensor: Tensor, value: float) -> Tensor:
    """
    Initialize a tensor with all elements set to `value`.

    Parameters
    ----------
    tensor : Tensor
        The tensor to initialize in-place.
    value : float
        Fill value.

    Returns
    -------
    Tensor
        The initialized tensor (same object).
    """
    tensor.copy_from(tensor.device.constant(tensor.shape, value))
    return tensor


@register_initializer("zeros")
def zeros(tensor: Tensor) -> Tensor:
    """Initialize a tensor with all elements set to zero."""
    return constant(tensor, 0.0)


@register_initializer("ones")
def ones(tensor: Tensor) -> Tensor:
    """Initialize a tensor with all elements set to one."""
    return constant(tensor, 1.0)
