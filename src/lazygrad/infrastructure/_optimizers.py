"""
Optimizer primitives for lazygrad.

This module provides optimizers that update `Parameter` instances in-place
using the gradients accumulated by `Graph.backward`.

Design notes
------------
- Parameters are registered explicitly with `add_parameter`; registering
  the same parameter twice is rejected.
- `step(scale)` multiplies every gradient by `scale`, applies the update
  rule to each parameter, then advances the epoch counter. The epoch starts
  at 1 and is used by Adam's bias correction.
- Gradients are not cleared by `step`; training loops call `zero_grad()`
  before the next backward pass.
- Optimizer math is expressed entirely in terms of Tensor operations.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Tuple

from ._parameter import Parameter
from ._tensor import Tensor

logger = logging.getLogger(__name__)


class Optimizer(ABC):
    """
    Base class of optimizers.

    Parameters
    ----------
    params : Iterable[Parameter], optional
        Parameters registered at construction.
    weight_decay : float, optional
        Classical L2 regularization coefficient (coupled with the gradient).
        Must be non-negative. Defaults to 0.0.

    Raises
    ------
    ValueError
        If ``weight_decay < 0``.
    """

    def __init__(self, params: Iterable[Parameter] = (), *, weight_decay: float = 0.0) -> None:
        self.weight_decay = float(weight_decay)
        if self.weight_decay < 0.0:
            raise ValueError(f"weight_decay must be >= 0, got {self.weight_decay}")
        self._params: List[Parameter] = []
        self._epoch = 1
        for p in params:
            self.add_parameter(p)

    @property
    def params(self) -> Tuple[Parameter, ...]:
        """Return the registered parameters, in registration order."""
        return tuple(self._params)

    @property
    def epoch(self) -> int:
        """Return the current epoch (1 before the first step)."""
        return self._epoch

    def add_parameter(self, param: Parameter) -> None:
        """
        Register a parameter.

        Raises
        ------
        ValueError
            If `param` is already registered.
        """
        if any(p is param for p in self._params):
            raise ValueError(f"Parameter is already registered: {param!r}")
        self._params.append(param)
        self.configure_parameter(param)

    def zero_grad(self) -> None:
        """Reset gradients of all registered parameters to zero."""
        for p in self._params:
            p.reset_gradient()

    def step(self, scale: float = 1.0) -> None:
        """
        Update every registered parameter and advance the epoch.

        Parameters
        ----------
        scale : float, optional
            Multiplier applied to each gradient before the update rule.
            Defaults to 1.0.

        Notes
        -----
        Frozen parameters (``requires_grad is False``) are skipped.
        """
        for p in self._params:
            if not p.requires_grad:
                continue
            g = float(scale) * p.gradient
            if self.weight_decay != 0.0:
                g = g + self.weight_decay * p.value
            self.update_parameter(p, g)
        logger.debug("%s: finished epoch %d", type(self).__name__, self._epoch)
        self._epoch += 1

    def configure_parameter(self, param: Parameter) -> None:
        """Create per-parameter state. No-op by default."""

    @abstractmethod
    def update_parameter(self, param: Parameter, grad: Tensor) -> None:
        """
        Apply the update rule to one parameter.

        Parameters
        ----------
        param : Parameter
            Parameter to update in place.
        grad : Tensor
            Scaled (and weight-decayed) gradient.
        """
        ...


class SGD(Optimizer):
    """
    Stochastic Gradient Descent (SGD) optimizer.

    Update rule
    -----------
    For each parameter ``p`` with effective gradient ``g``:

        p <- p - lr * g

    Parameters
    ----------
    params : Iterable[Parameter], optional
        Parameters to be optimized.
    lr : float, optional
        Learning rate. Must be positive. Defaults to 0.1.
    weight_decay : float, optional
        Classical L2 weight decay coefficient. Defaults to 0.0.
    """

    def __init__(
        self,
        params: Iterable[Parameter] = (),
        *,
        lr: float = 0.1,
        weight_decay: float = 0.0,
    ) -> None:
        self.lr = float(lr)
        if self.lr <= 0.0:
            raise ValueError(f"lr must be > 0, got {self.lr}")
        super().__init__(params, weight_decay=weight_decay)

    def update_parameter(self, param: Parameter, grad: Tensor) -> None:
        param.add_value(-self.lr * grad)


class Adam(Optimizer):
    """
    Adam optimizer.

    Update rule
    -----------
    Let ``g`` be the effective gradient and ``t`` the current epoch:

        m <- beta1 * m + (1 - beta1) * g
        v <- beta2 * v + (1 - beta2) * g^2

        m_hat = m / (1 - beta1^t)
        v_hat = v / (1 - beta2^t)

        p <- p - lr * m_hat / (sqrt(v_hat) + eps)

    Parameters
    ----------
    params : Iterable[Parameter], optional
        Parameters to be optimized.
    lr : float, optional
        Learning rate (alpha). Must be positive. Defaults to 1e-3.
    betas : tuple[float, float], optional
        Decay rates of the first and second moments, each in (0, 1).
        Defaults to (0.9, 0.999).
    eps : float, optional
        Numerical stability epsilon. Must be positive. Defaults to 1e-8.
    weight_decay : float, optional
        Classical L2 regularization coefficient. Defaults to 0.0.

    Notes
    -----
    Moment estimates are created as zeros when a parameter is registered.
    """

    def __init__(
        self,
        params: Iterable[Parameter] = (),
        *,
        lr: float = 1e-3,
        betas: Tuple[float, float] = (0.9, 0.999),
        eps: float = 1e-8,
        weight_decay: float = 0.0,
    ) -> None:
        self.lr = float(lr)
        self.betas = (float(betas[0]), float(betas[1]))
        self.eps = float(eps)

        b1, b2 = self.betas
        if self.lr <= 0.0:
            raise ValueError(f"lr must be > 0, got {self.lr}")
        if not (0.0 < b1 < 1.0) or not (0.0 < b2 < 1.0):
            raise ValueError(f"betas must be in (0,1), got {self.betas}")
        if self.eps <= 0.0:
            raise ValueError(f"eps must be > 0, got {self.eps}")

        # id(p) -> (m, v)
        self._state: Dict[int, Tuple[Tensor, Tensor]] = {}
        super().__init__(params, weight_decay=weight_decay)

    def configure_parameter(self, param: Parameter) -> None:
        m = param.device.constant(param.shape, 0)
        v = param.device.constant(param.shape, 0)
        self._state[id(param)] = (m, v)

    def update_parameter(self, param: Parameter, grad: Tensor) -> None:
        b1, b2 = self.betas
        t = self.epoch
        m, v = self._state[id(param)]

        m.copy_from(b1 * m + (1.0 - b1) * grad)
        v.copy_from(b2 * v + (1.0 - b2) * (grad * grad))

        m_hat = m / (1.0 - b1**t)
        v_hat = v / (1.0 - b2**t)
        param.add_value(-self.lr * (m_hat / (v_hat.sqrt() + self.eps)))
