"""
Named weight initializers.

Initialization rules are plain functions ``rule(tensor, *args, **kwargs)``
that overwrite `tensor` in place. They are stored in a module-level table
keyed by name (see `register_initializer`). A `WeightInitializer` binds one
rule to its arguments so it can be stored and applied to many parameters:

    init = WeightInitializer("uniform", -0.1, 0.1)
    w.reset_value(init)
    b.reset_value(init)

`Parameter.reset_value` also accepts the name and arguments directly.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Tuple

from ..._tensor import Tensor

Rule = Callable[..., Tensor]

_RULES: Dict[str, Rule] = {}


def register_initializer(name: str, *, overwrite: bool = False) -> Callable[[Rule], Rule]:
    """
    Decorator adding an initialization rule under `name`.

    Raises
    ------
    ValueError
        If `name` is empty, or already taken and `overwrite` is False.
    """
    if not name:
        raise ValueError("Initializer name must be a non-empty string")

    def decorator(rule: Rule) -> Rule:
        if name in _RULES and not overwrite:
            raise ValueError(f"Initializer already registered: {name!r}")
        _RULES[name] = rule
        return rule

    return decorator


def available_initializers() -> Tuple[str, ...]:
    """Return the registered names, sorted."""
    return tuple(sorted(_RULES))


class WeightInitializer:
    """
    An initialization rule bound to its arguments.

    Parameters
    ----------
    name : str
        Registered rule name (``"constant"``, ``"xavier_uniform"``, ...).
    *args, **kwargs
        Arguments passed to the rule after the tensor, e.g. the fill value
        of ``"constant"`` or the bounds of ``"uniform"``.

    Raises
    ------
    ValueError
        If `name` is not registered.
    """

    __slots__ = ("_name", "_rule", "_args", "_kwargs")

    def __init__(self, name: str, *args: Any, **kwargs: Any) -> None:
        if name not in _RULES:
            raise ValueError(
                f"Unsupported initializer name: {name!r}. "
                f"Available: {', '.join(available_initializers()) or '<none>'}"
            )
        self._name = name
        self._rule = _RULES[name]
        self._args = args
        self._kwargs = kwargs

    @property
    def name(self) -> str:
        return self._name

    def __repr__(self) -> str:
        bound = [repr(a) for a in self._args]
        bound += [f"{k}={v!r}" for k, v in self._kwargs.items()]
        return f"WeightInitializer({', '.join([repr(self._name)] + bound)})"

    def __call__(self, tensor: Tensor) -> Tensor:
        """
        Overwrite every element of `tensor` and return it.

        Raises
        ------
        ValueError
            If `tensor` holds no data, or a bound distribution parameter
            is out of range.
        """
        if not tensor.valid():
            raise ValueError(f"{self!r} cannot initialize an invalid tensor")
        return self._rule(tensor, *self._args, **self._kwargs)
