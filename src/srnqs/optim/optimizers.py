from __future__ import annotations

from typing import Any, Protocol

import numpy as np

from srnqs.types import ScalarArray


class Optimizer(Protocol):
    """Turns a (natural) gradient into the parameter delta to apply."""

    def get_update(self, grad: ScalarArray) -> ScalarArray: ...

    def describe(self) -> dict[str, Any]: ...


class Sgd:
    """Gradient descent with optional heavy-ball momentum."""

    def __init__(self, eta: float, momentum: float = 0.0) -> None:
        if eta <= 0.0:
            raise ValueError("eta must be > 0")
        if not 0.0 <= momentum < 1.0:
            raise ValueError("momentum must be in [0, 1)")
        self.eta = eta
        self.momentum = momentum
        self._velocity: ScalarArray | None = None

    def get_update(self, grad: ScalarArray) -> ScalarArray:
        if self._velocity is None or self._velocity.shape != grad.shape:
            self._velocity = np.zeros_like(grad)
        self._velocity = self.momentum * self._velocity + grad
        return -self.eta * self._velocity

    def describe(self) -> dict[str, Any]:
        return {"name": "SGD", "eta": self.eta, "momentum": self.momentum}


class Adam:
    """Adam; complex gradients use ``|g|^2`` as the second moment."""

    def __init__(
        self,
        alpha: float = 1.0e-3,
        beta1: float = 0.9,
        beta2: float = 0.999,
        eps: float = 1.0e-8,
    ) -> None:
        if alpha <= 0.0:
            raise ValueError("alpha must be > 0")
        if not (0.0 <= beta1 < 1.0 and 0.0 <= beta2 < 1.0):
            raise ValueError("beta1 and beta2 must be in [0, 1)")
        self.alpha = alpha
        self.beta1 = beta1
        self.beta2 = beta2
        self.eps = eps
        self._t = 0
        self._m: ScalarArray | None = None
        self._v: np.ndarray | None = None

    def get_update(self, grad: ScalarArray) -> ScalarArray:
        if self._m is None or self._v is None or self._m.shape != grad.shape:
            self._m = np.zeros_like(grad)
            self._v = np.zeros(grad.shape, dtype=np.float64)
            self._t = 0

        self._t += 1
        self._m = self.beta1 * self._m + (1.0 - self.beta1) * grad
        self._v = self.beta2 * self._v + (1.0 - self.beta2) * np.abs(grad) ** 2

        m_hat = self._m / (1.0 - self.beta1**self._t)
        v_hat = self._v / (1.0 - self.beta2**self._t)
        return -self.alpha * m_hat / (np.sqrt(v_hat) + self.eps)

    def describe(self) -> dict[str, Any]:
        return {
            "name": "Adam",
            "alpha": self.alpha,
            "beta1": self.beta1,
            "beta2": self.beta2,
            "eps": self.eps,
        }
