"""
Weight initializers.

Importing this package registers the built-in rules: ``constant``,
``zeros``, ``ones``, ``uniform``, ``normal``, ``xavier`` and
``xavier_uniform``.
"""

from . import _constants, _random, _xavier  # noqa: F401  (registration)
from ._base import WeightInitializer, available_initializers, register_initializer
from ._xavier import fan_in_and_fan_out

__all__ = [
    "WeightInitializer",
    "available_initializers",
    "fan_in_and_fan_out",
    "register_initializer",
]
