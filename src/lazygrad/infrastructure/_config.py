"""
Runtime configuration for the NumPy backend.

Settings are read from environment variables so that test runs and scripts
can switch precision or fix random seeds without code changes:

- ``LAZYGRAD_DTYPE``: element type of newly allocated tensors,
  ``float32`` (default) or ``float64``.
- ``LAZYGRAD_SEED``: integer seed for the device random generator. Unset
  means nondeterministic seeding.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

import numpy as np

_SUPPORTED_DTYPES = {
    "float32": np.float32,
    "float64": np.float64,
}


@dataclass(frozen=True)
class RuntimeConfig:
    """Backend defaults used when a device is created without overrides."""

    dtype: np.dtype = np.dtype(np.float32)
    seed: Optional[int] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RuntimeConfig":
        """
        Build a configuration from environment variables.

        Parameters
        ----------
        environ : Mapping[str, str], optional
            Variables to read. Defaults to ``os.environ``.

        Returns
        -------
        RuntimeConfig
            The parsed configuration.

        Raises
        ------
        ValueError
            If a variable holds an unsupported value.
        """
        env = os.environ if environ is None else environ

        dtype_name = env.get("LAZYGRAD_DTYPE", "float32").strip().lower()
        if dtype_name not in _SUPPORTED_DTYPES:
            raise ValueError(
                f"Unsupported LAZYGRAD_DTYPE {dtype_name!r}. "
                f"Available: {', '.join(sorted(_SUPPORTED_DTYPES))}"
            )

        seed_text = env.get("LAZYGRAD_SEED", "").strip()
        seed: Optional[int] = None
        if seed_text:
            try:
                seed = int(seed_text)
            except ValueError as e:
                raise ValueError(
                    f"LAZYGRAD_SEED must be an integer, got {seed_text!r}"
                ) from e

        return cls(dtype=np.dtype(_SUPPORTED_DTYPES[dtype_name]), seed=seed)
