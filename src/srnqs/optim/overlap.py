from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import numpy.typing as npt

from srnqs.nqs.rbm import Rbm
from srnqs.optim.sr import SrAccumulator
from srnqs.physics.basis import to_sigma
from srnqs.types import ComplexArray, ScalarArray
from srnqs.utils.checks import require_finite


class OverlapExact:
    """Fidelity with a fixed target state over an enumerated basis.

    ``calc_log_grad`` is the gradient of ``-log F`` with
    ``F = |<phi|psi>|^2 / (<psi|psi> <phi|phi>)``; its metric ``corr_mat`` is
    the same ``|psi|^2``-weighted covariance used for energy minimization.
    """

    def __init__(self, machine: Rbm, basis: Sequence[int]) -> None:
        if not basis:
            raise ValueError("basis must not be empty")
        self.machine = machine
        self.basis = list(basis)
        self._target: ComplexArray | None = None
        self._data: tuple[SrAccumulator, ScalarArray, float] | None = None

    def set_target(self, target: npt.ArrayLike) -> None:
        arr = np.asarray(target, dtype=np.complex128)
        if arr.shape != (len(self.basis),):
            raise ValueError(
                f"target must have shape ({len(self.basis)},), received {arr.shape}"
            )
        require_finite("target", arr)
        norm = float(np.linalg.norm(arr))
        if norm == 0.0:
            raise ValueError("target state must be non-zero")
        self._target = arr / norm

    def construct_exact(self) -> None:
        if self._target is None:
            raise RuntimeError("call set_target first")

        n_rows = len(self.basis)
        operators = np.empty((n_rows, self.machine.dim), dtype=self.machine.dtype)
        logs = np.empty(n_rows, dtype=np.complex128)
        for row, idx in enumerate(self.basis):
            sigma, theta = self.machine.make_data(to_sigma(self.machine.n, idx))
            operators[row] = self.machine.log_deriv(sigma, theta)
            logs[row] = self.machine.log_coeff(sigma, theta)

        psi = np.exp(logs - np.max(np.real(logs)))
        norm_sq = float(np.sum(np.abs(psi) ** 2))
        weights = np.abs(psi) ** 2 / norm_sq

        acc = SrAccumulator.from_rows(
            operators, np.zeros(n_rows, dtype=np.complex128), weights, dense=True
        )
        cross = np.conj(psi) * self._target
        overlap = complex(np.sum(cross))
        grad = np.conj(acc.mean_o) - (cross @ np.conj(operators)) / overlap
        fidelity = abs(overlap) ** 2 / norm_sq

        if not self.machine.is_complex:
            grad = np.real(grad)
        self._data = (acc, grad, fidelity)

    def _require(self) -> tuple[SrAccumulator, ScalarArray, float]:
        if self._data is None:
            raise RuntimeError("call construct_exact first")
        return self._data

    def corr_mat(self) -> ScalarArray:
        cov = self._require()[0].covariance()
        return np.real(cov) if not self.machine.is_complex else cov

    def calc_log_grad(self) -> ScalarArray:
        return self._require()[1]

    def fidelity(self) -> float:
        return self._require()[2]
