from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from srnqs.optim.cg import LinearOperator, solve_cg
from srnqs.types import ScalarArray


@dataclass(frozen=True)
class SolveResult:
    """Outcome of one regularized SR solve.

    ``solution`` is ``None`` whenever ``error`` is set; a failed solve is
    never applied to the machine.
    """

    solution: ScalarArray | None
    error: str | None = None
    iterations: int = 0
    residual_norm: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


def cholesky_solve(matrix: ScalarArray, rhs: ScalarArray, shift: float) -> SolveResult:
    """Solve ``(matrix + shift I) x = rhs`` by Cholesky factorization."""

    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError("matrix must be square")
    if rhs.shape != (matrix.shape[0],):
        raise ValueError("rhs does not match matrix dimension")

    regularized = matrix + shift * np.eye(matrix.shape[0], dtype=matrix.dtype)
    try:
        lower = np.linalg.cholesky(regularized)
    except np.linalg.LinAlgError as exc:
        return SolveResult(solution=None, error=f"cholesky failed: {exc}")

    y = np.linalg.solve(lower, rhs)
    x = np.linalg.solve(np.conj(lower).T, y)
    residual = float(np.linalg.norm(regularized @ x - rhs))
    return SolveResult(solution=x, iterations=1, residual_norm=residual)


def cg_solve(
    apply: LinearOperator,
    rhs: ScalarArray,
    rtol: float,
    max_iterations: int,
    preconditioner: LinearOperator | None = None,
) -> SolveResult:
    """Matrix-free CG; non-convergence is reported and the partial solution dropped."""

    result = solve_cg(
        matvec=apply,
        rhs=rhs,
        rtol=rtol,
        max_iterations=max_iterations,
        preconditioner=preconditioner,
    )
    if not result.converged:
        return SolveResult(
            solution=None,
            error=(
                f"cg did not converge in {result.iterations} iterations "
                f"(residual {result.residual_norm:.3e})"
            ),
            iterations=result.iterations,
            residual_norm=result.residual_norm,
        )
    return SolveResult(
        solution=result.solution,
        iterations=result.iterations,
        residual_norm=result.residual_norm,
    )
