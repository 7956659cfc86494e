"""
Domain-level optimizer contracts for lazygrad.

This module defines the `IOptimizer` protocol, which specifies the minimal
interface required for optimizer implementations (e.g., SGD, Adam).

Notes
-----
- Domain contracts are backend-agnostic and must not depend on NumPy or
  infrastructure implementations.
- Optimizers update parameters after a backward pass has accumulated their
  gradients. Gradient computation itself happens in the graph engine and is
  outside the scope of this protocol.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable

from ._parameter import IParameter


@runtime_checkable
class IOptimizer(Protocol):
    """
    Optimizer interface contract.

    Required members
    ----------------
    - `add_parameter()` registers a parameter to be managed.
    - `zero_grad()` resets gradients of managed parameters to zero.
    - `step()` applies one update to every managed parameter and advances
      the epoch counter.
    """

    def add_parameter(self, param: IParameter) -> None:
        """Register `param` for optimization."""
        ...

    def zero_grad(self) -> None:
        """Reset gradients of all managed parameters to zero."""
        ...

    def step(self, scale: float = 1.0) -> None:
        """
        Apply one optimization step.

        Parameters
        ----------
        scale : float, optional
            Multiplier applied to every gradient before the update rule.
        """
        ...

    @property
    def params(self) -> Iterable[IParameter]:
        """Return the parameters managed by this optimizer."""
        ...

    @property
    def epoch(self) -> int:
        """Return the current epoch (1 before the first step)."""
        ...
