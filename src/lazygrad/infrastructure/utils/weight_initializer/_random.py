"""
Random weight initializers.

Provided initializers
---------------------
- ``uniform``: samples from ``U(lower, upper)``.
- ``normal``: samples from ``N(mean, sd^2)``.

Samples are drawn from the random generator of the tensor's device, so
results are reproducible when the device is seeded (``LAZYGRAD_SEED``).
"""

from ._base import register_initializer
from ..._tensor import Tensor


@register_initializer("uniform")
def uniform(tensor: Tensor, lower: float, upper: float) -> Tensor:
    """
    Initialize a tensor from a uniform distribution.

    Parameters
    ----------
    tensor : Tensor
        The tensor to initialize in-place.
    lower, upper : float
        Bounds of the distribution. `lower` must be smaller than `upper`.

    Returns
    -------
    Tensor
        The initialized tensor (same object).
    """
    tensor.copy_from(tensor.device.random_uniform(tensor.shape, lower, upper))
    return tensor


@register_initializer("normal")
def normal(tensor: Tensor, mean: float = 0.0, sd: float = 1.0) -> Tensor:
    """
    Initialize a tensor from a normal distribution.

    Parameters
    ----------
    tensor : Tensor
        The tensor to initialize in-place.
    mean : float, optional
        Mean of the distribution. Defaults to 0.
    sd : float, optional
        Standard deviation, must be positive. Defaults to 1.

    Returns
    -------
    Tensor
        The initialized tensor (same object).
    """
    tensor.copy_from(tensor.device.random_normal(tensor.shape, mean, sd))
    return tensor
