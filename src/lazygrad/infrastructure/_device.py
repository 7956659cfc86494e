"""
NumPy-backed CPU device.

This module provides `CPUDevice`, the concrete implementation of the
domain-level `IDevice` protocol. A device allocates tensors: constant-filled
tensors (used by the graph to seed gradients), tensors built from explicit
values, and random tensors (used by weight initializers).

It also provides `get_device`, which validates user-facing device strings
such as ``"cpu"`` or ``"cuda:0"``.

Notes
-----
- Tensor storage is laid out as ``(batch_size, *shape.dims())`` in C order.
- Only the CPU backend exists. CUDA device strings are recognized and
  rejected with `DeviceNotSupportedError`.
"""

from __future__ import annotations

import re
from typing import Any, Optional

import numpy as np

from ..domain._device import DeviceType
from ..domain._errors import DeviceNotSupportedError
from ..domain._shape import Shape
from ._config import RuntimeConfig
from ._tensor import Tensor


class CPUDevice:
    """
    CPU device allocating NumPy-backed tensors.

    Parameters
    ----------
    dtype : np.dtype, optional
        Element type of allocated tensors. Defaults to the configured dtype
        (``LAZYGRAD_DTYPE``, float32 when unset).
    seed : int, optional
        Seed of the random generator. Defaults to the configured seed
        (``LAZYGRAD_SEED``), or nondeterministic seeding when unset.
    """

    type = DeviceType.CPU

    def __init__(
        self, dtype: Optional[np.dtype] = None, seed: Optional[int] = None
    ) -> None:
        cfg = RuntimeConfig.from_env()
        self._dtype = np.dtype(cfg.dtype if dtype is None else dtype)
        self._rng = np.random.default_rng(cfg.seed if seed is None else seed)

    def __str__(self) -> str:
        return "cpu"

    def __repr__(self) -> str:
        return f"CPUDevice(dtype={self._dtype})"

    @property
    def dtype(self) -> np.dtype:
        """Element type of tensors allocated by this device."""
        return self._dtype

    def is_cpu(self) -> bool:
        return True

    def _wrap(self, shape: Shape, arr: np.ndarray) -> Tensor:
        return Tensor(shape, self, arr.astype(self._dtype, copy=False))

    def constant(self, shape: Shape, k: float) -> Tensor:
        """
        Create a tensor with every element set to `k`.

        Parameters
        ----------
        shape : Shape
            Shape (including batch size) of the new tensor.
        k : float
            Fill value.

        Returns
        -------
        Tensor
            Newly allocated tensor.
        """
        return self._wrap(shape, np.full(Tensor.layout(shape), k, dtype=self._dtype))

    def new_tensor(self, shape: Shape, values: Any) -> Tensor:
        """
        Create a tensor from explicit values.

        Parameters
        ----------
        shape : Shape
            Shape (including batch size) of the new tensor.
        values : array_like
            Values in ``(batch, *dims)`` C order; any array shape with the
            right number of elements is accepted.

        Returns
        -------
        Tensor
            Newly allocated tensor holding a copy of `values`.

        Raises
        ------
        ValueError
            If the number of values differs from
            ``shape.num_total_elements()``.
        """
        arr = np.array(values, dtype=self._dtype)
        if arr.size != shape.num_total_elements():
            raise ValueError(
                f"Data sizes mismatched. values: {arr.size} "
                f"!= shape: {shape.num_total_elements()} ({shape})"
            )
        return self._wrap(shape, arr.reshape(Tensor.layout(shape)))

    def random_uniform(self, shape: Shape, lower: float, upper: float) -> Tensor:
        """Create a tensor sampled from ``U(lower, upper)``."""
        if not lower < upper:
            raise ValueError(f"lower must be < upper, got {lower} >= {upper}")
        arr = self._rng.uniform(lower, upper, size=Tensor.layout(shape))
        return self._wrap(shape, arr)

    def random_normal(self, shape: Shape, mean: float, sd: float) -> Tensor:
        """Create a tensor sampled from ``N(mean, sd^2)``."""
        if sd <= 0.0:
            raise ValueError(f"sd must be > 0, got {sd}")
        arr = self._rng.normal(mean, sd, size=Tensor.layout(shape))
        return self._wrap(shape, arr)


_CUDA_PATTERN = re.compile(r"^cuda:(\d+)$")


def get_device(device: str, **kwargs: Any) -> CPUDevice:
    """
    Create a device from a device string.

    Parameters
    ----------
    device : str
        ``"cpu"`` or ``"cuda:<index>"``.
    **kwargs
        Forwarded to the device constructor.

    Returns
    -------
    CPUDevice
        The created device.

    Raises
    ------
    DeviceNotSupportedError
        If a CUDA device is requested.
    ValueError
        If the device string is invalid.
    """
    if device == "cpu":
        return CPUDevice(**kwargs)
    if _CUDA_PATTERN.match(device):
        raise DeviceNotSupportedError("get_device", device)
    raise ValueError(f"Invalid device '{device}'. Expected 'cpu' or 'cuda:<index>'")
