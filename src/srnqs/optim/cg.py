from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from srnqs.types import FloatArray, ScalarArray

LinearOperator = Callable[[ScalarArray], ScalarArray]


@dataclass(frozen=True)
class CgResult:
    """Conjugate-gradient solution diagnostics."""

    solution: ScalarArray
    converged: bool
    iterations: int
    residual_norm: float
    residual_history: FloatArray


def _inner(x: ScalarArray, y: ScalarArray) -> float:
    # <x, y> of a Hermitian form is real; the imaginary part is rounding noise
    return float(np.real(np.vdot(x, y)))


def jacobi_preconditioner(diagonal: ScalarArray, floor: float = 1.0e-12) -> LinearOperator:
    """Inverse-diagonal preconditioner; entries below ``floor`` are clamped."""

    inv = 1.0 / np.maximum(np.real(diagonal), floor)
    return lambda r: inv * r


def solve_cg(
    matvec: LinearOperator,
    rhs: ScalarArray,
    rtol: float,
    max_iterations: int,
    x0: ScalarArray | None = None,
    preconditioner: LinearOperator | None = None,
) -> CgResult:
    """Matrix-free (preconditioned) conjugate gradient for Hermitian PD systems.

    Real and complex vectors are both accepted. Convergence means
    ``||rhs - A x|| <= rtol * max(||rhs||, 1)``. Without a preconditioner
    this is plain CG.
    """

    if rhs.ndim != 1:
        raise ValueError("rhs must be rank-1")
    if rtol <= 0.0:
        raise ValueError("rtol must be positive")
    if max_iterations < 1:
        raise ValueError("max_iterations must be >= 1")

    precondition = preconditioner if preconditioner is not None else (lambda r: r)
    x = np.zeros_like(rhs) if x0 is None else np.array(x0, dtype=rhs.dtype, copy=True)
    r = rhs - matvec(x)
    target = rtol * max(float(np.linalg.norm(rhs)), 1.0)

    history = [float(np.linalg.norm(r))]
    if history[-1] <= target:
        return CgResult(x, True, 0, history[-1], np.asarray(history, dtype=np.float64))

    z = precondition(r)
    p = np.array(z, copy=True)
    rz = _inner(r, z)
    iterations = 0
    converged = False

    while iterations < max_iterations:
        iterations += 1
        ap = matvec(p)
        curvature = _inner(p, ap)
        if abs(curvature) < 1.0e-20:
            break

        step = rz / curvature
        x = x + step * p
        r = r - step * ap
        history.append(float(np.linalg.norm(r)))
        if history[-1] <= target:
            converged = True
            break

        z = precondition(r)
        rz_next = _inner(r, z)
        p = z + (rz_next / rz) * p
        rz = rz_next

    return CgResult(
        solution=x,
        converged=converged,
        iterations=iterations,
        residual_norm=history[-1],
        residual_history=np.asarray(history, dtype=np.float64),
    )
