from srnqs.optim.cg import CgResult, LinearOperator, jacobi_preconditioner, solve_cg
from srnqs.optim.optimizers import Adam, Optimizer, Sgd
from srnqs.optim.overlap import OverlapExact
from srnqs.optim.schedules import geometric_decay, lambda_schedule
from srnqs.optim.solvers import SolveResult, cg_solve, cholesky_solve
from srnqs.optim.sr import (
    SrAccumulator,
    SrMatExact,
    SrMatFree,
    accumulate,
    evaluate_configurations,
)

__all__ = [
    "Adam",
    "CgResult",
    "LinearOperator",
    "Optimizer",
    "OverlapExact",
    "Sgd",
    "SolveResult",
    "SrAccumulator",
    "SrMatExact",
    "SrMatFree",
    "accumulate",
    "cg_solve",
    "cholesky_solve",
    "evaluate_configurations",
    "geometric_decay",
    "jacobi_preconditioner",
    "lambda_schedule",
    "solve_cg",
]
