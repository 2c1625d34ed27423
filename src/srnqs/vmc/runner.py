from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from pathlib import Path
from types import TracebackType
from typing import Literal

import numpy as np
import numpy.typing as npt

from srnqs.nqs.rbm import Rbm
from srnqs.nqs.serialization import save_machine
from srnqs.optim.cg import jacobi_preconditioner
from srnqs.optim.optimizers import Optimizer
from srnqs.optim.overlap import OverlapExact
from srnqs.optim.schedules import lambda_schedule
from srnqs.optim.solvers import SolveResult, cg_solve, cholesky_solve
from srnqs.optim.sr import SrMatExact, SrMatFree
from srnqs.physics.hamiltonians import Hamiltonian
from srnqs.sampling.sampler import SampleSource
from srnqs.types import ScalarArray
from srnqs.utils.logging import log_event
from srnqs.utils.statistics import clipped_blocking

logger = logging.getLogger(__name__)

SolverKind = Literal["cg", "cholesky"]


@dataclass(frozen=True)
class IterationMetrics:
    """Per-iteration diagnostics handed to the callback.

    ``error`` is set when the solve failed (no update was applied) or the
    parameters contain NaN/Inf after the update. ``eloc_imag`` is
    ``Im <E_loc>``, which should vanish up to noise for a Hermitian
    Hamiltonian.
    """

    iteration: int
    energy: float | None
    energy_stderr: float | None
    update_norm: float
    diagonal_shift: float
    cg_iterations: int
    cg_residual_norm: float
    acceptance_rate: float | None
    sampling_seconds: float
    solve_seconds: float
    error: str | None = None
    fidelity: float | None = None
    eloc_imag: float | None = None


Callback = Callable[[IterationMetrics], bool | None]


class CheckpointWriter:
    """Writes ``w{ll:04d}.npz`` every ``save_every`` iterations on one background thread.

    Parameters are copied before submission; leaving the context waits for
    every pending write and re-raises the first I/O error.
    """

    def __init__(self, directory: Path | None, save_every: int) -> None:
        if save_every < 0:
            raise ValueError("save_every must be >= 0")
        self.directory = directory
        self.save_every = save_every
        self._pool: ThreadPoolExecutor | None = None
        self._pending: list[Future[None]] = []

    @property
    def enabled(self) -> bool:
        return self.directory is not None and self.save_every > 0

    def __enter__(self) -> CheckpointWriter:
        if self.enabled:
            self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="checkpoint")
        return self

    def maybe_save(self, iteration: int, machine: Rbm) -> None:
        if self._pool is None or self.directory is None or iteration % self.save_every != 0:
            return
        path = self.directory / f"w{iteration:04d}.npz"
        self._pending.append(self._pool.submit(save_machine, path, machine.copy()))

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._pool is None:
            return
        self._pool.shutdown(wait=True)
        self._pool = None
        pending, self._pending = self._pending, []
        if exc_type is None:
            for future in pending:
                future.result()


class Runner:
    """SR optimization loop for one machine.

    Each iteration estimates ``S`` and ``F`` (sampled or exact), solves
    ``(S + lambda_ll I) v = F`` with
    ``lambda_ll = max(lambda_min, lambda_ini * lambda_decay**ll)``, asks the
    optimizer for the step and applies it. Numerical failures are reported in
    :class:`IterationMetrics` and never raised; a callback returning ``False``
    stops the run.
    """

    def __init__(
        self,
        machine: Rbm,
        optimizer: Optimizer,
        lambda_ini: float = 1.0,
        lambda_decay: float = 0.9,
        lambda_min: float = 1.0e-4,
        use_sr: bool = True,
        solver: SolverKind = "cg",
        cg_tolerance: float = 1.0e-4,
        cg_max_iterations: int = 500,
        cg_jacobi: bool = False,
        n_workers: int = 1,
        n_bins: int = 10,
        save_every: int = 0,
        checkpoint_dir: Path | None = None,
    ) -> None:
        if lambda_min < 0.0 or lambda_ini < 0.0:
            raise ValueError("lambda_ini and lambda_min must be >= 0")
        if solver not in ("cg", "cholesky"):
            raise ValueError(f"unknown solver {solver!r}")
        self.machine = machine
        self.optimizer = optimizer
        self.lambda_ini = lambda_ini
        self.lambda_decay = lambda_decay
        self.lambda_min = lambda_min
        self.use_sr = use_sr
        self.solver: SolverKind = solver
        self.cg_tolerance = cg_tolerance
        self.cg_max_iterations = cg_max_iterations
        self.cg_jacobi = cg_jacobi
        self.n_workers = n_workers
        self.n_bins = n_bins
        self.save_every = save_every
        self.checkpoint_dir = checkpoint_dir

    def diagonal_shift(self, iteration: int) -> float:
        return lambda_schedule(iteration, self.lambda_ini, self.lambda_decay, self.lambda_min)

    def describe(self) -> dict[str, object]:
        return {
            "machine": self.machine.describe(),
            "optimizer": self.optimizer.describe(),
            "lambda": [self.lambda_ini, self.lambda_decay, self.lambda_min],
            "use_sr": self.use_sr,
            "solver": self.solver,
            "cg_tolerance": self.cg_tolerance,
            "cg_jacobi": self.cg_jacobi,
        }

    # -- loops ------------------------------------------------------------

    def run(
        self,
        sampler: SampleSource,
        hamiltonian: Hamiltonian,
        n_iterations: int,
        n_sweeps: int,
        n_therm: int,
        callback: Callback | None = None,
    ) -> list[IterationMetrics]:
        """Sampled SR: matrix-free CG (or Cholesky on the explicit ``S``)."""

        sr = SrMatFree(self.machine, n_workers=self.n_workers, n_bins=self.n_bins)

        def step(ll: int, shift: float) -> tuple[SolveResult, dict[str, float | None]]:
            t0 = time.perf_counter()
            samples = sampler.sampling(n_sweeps, n_therm)
            sr.construct_from_sampling(samples, hamiltonian)
            sampling_seconds = time.perf_counter() - t0

            energy = clipped_blocking(np.real(sr.local_energies), self.n_bins)
            grad = sr.get_f()
            if not self.use_sr:
                result = SolveResult(solution=grad)
            elif self.solver == "cg":
                sr.shift = shift
                preconditioner = jacobi_preconditioner(sr.diagonal()) if self.cg_jacobi else None
                result = cg_solve(
                    sr.apply, grad, self.cg_tolerance, self.cg_max_iterations, preconditioner
                )
            else:
                result = cholesky_solve(sr.explicit_matrix(), grad, shift)
            return result, {
                "energy": sr.eloc(),
                "eloc_imag": sr.eloc_imag,
                "energy_stderr": energy.stderr,
                "acceptance_rate": sampler.acceptance_rate,
                "sampling_seconds": sampling_seconds,
            }

        return self._loop(n_iterations, step, callback)

    def run_exact(
        self,
        basis: Sequence[int],
        hamiltonian: Hamiltonian,
        n_iterations: int,
        callback: Callback | None = None,
    ) -> list[IterationMetrics]:
        """Exact SR over ``basis`` with a dense Cholesky solve."""

        srex = SrMatExact(self.machine, basis, hamiltonian, n_workers=self.n_workers)

        def step(ll: int, shift: float) -> tuple[SolveResult, dict[str, float | None]]:
            t0 = time.perf_counter()
            srex.construct_exact()
            sampling_seconds = time.perf_counter() - t0

            grad = srex.energy_grad()
            if self.use_sr:
                result = cholesky_solve(srex.corr_mat(), grad, shift)
            else:
                result = SolveResult(solution=grad)
            return result, {
                "energy": srex.eloc(),
                "eloc_imag": srex.eloc_imag,
                "energy_stderr": 0.0,
                "acceptance_rate": None,
                "sampling_seconds": sampling_seconds,
            }

        return self._loop(n_iterations, step, callback)

    def run_supervised(
        self,
        basis: Sequence[int],
        target: npt.ArrayLike,
        n_iterations: int,
        callback: Callback | None = None,
    ) -> list[IterationMetrics]:
        """Fit the machine to ``target`` (amplitudes over ``basis``) by maximizing fidelity.

        The reported fidelity is the one before the iteration's update.
        """

        overlap = OverlapExact(self.machine, basis)
        overlap.set_target(target)

        def step(ll: int, shift: float) -> tuple[SolveResult, dict[str, float | None]]:
            t0 = time.perf_counter()
            overlap.construct_exact()
            sampling_seconds = time.perf_counter() - t0

            grad = overlap.calc_log_grad()
            if self.use_sr:
                result = cholesky_solve(overlap.corr_mat(), grad, shift)
            else:
                result = SolveResult(solution=grad)
            return result, {
                "energy": None,
                "energy_stderr": None,
                "acceptance_rate": None,
                "sampling_seconds": sampling_seconds,
                "fidelity": overlap.fidelity(),
            }

        return self._loop(n_iterations, step, callback)

    # -- shared iteration -----------------------------------------------------

    def _loop(
        self,
        n_iterations: int,
        step: Callable[[int, float], tuple[SolveResult, dict[str, float | None]]],
        callback: Callback | None,
    ) -> list[IterationMetrics]:
        if n_iterations < 0:
            raise ValueError("n_iterations must be >= 0")

        history: list[IterationMetrics] = []
        with CheckpointWriter(self.checkpoint_dir, self.save_every) as writer:
            for ll in range(n_iterations):
                writer.maybe_save(ll, self.machine)

                shift = self.diagonal_shift(ll)
                t0 = time.perf_counter()
                result, measured = step(ll, shift)
                update_norm, error = self._apply(result)
                solve_seconds = time.perf_counter() - t0 - float(
                    measured["sampling_seconds"] or 0.0
                )

                metrics = IterationMetrics(
                    iteration=ll,
                    energy=measured["energy"],
                    energy_stderr=measured["energy_stderr"],
                    update_norm=update_norm,
                    diagonal_shift=shift,
                    cg_iterations=result.iterations,
                    cg_residual_norm=result.residual_norm,
                    acceptance_rate=measured["acceptance_rate"],
                    sampling_seconds=float(measured["sampling_seconds"] or 0.0),
                    solve_seconds=solve_seconds,
                    error=error,
                    fidelity=measured.get("fidelity"),
                    eloc_imag=measured.get("eloc_imag"),
                )
                history.append(metrics)

                if error is not None:
                    log_event(logger, "numerical_failure", level=logging.WARNING, **asdict(metrics))
                else:
                    log_event(logger, "iteration", **asdict(metrics))

                if callback is not None and callback(metrics) is False:
                    logger.info("callback stopped the run after iteration %d", ll)
                    break
        return history

    def _apply(self, result: SolveResult) -> tuple[float, str | None]:
        if not result.ok or result.solution is None:
            return float("nan"), result.error

        v: ScalarArray = result.solution
        update_norm = float(np.linalg.norm(v))
        self.machine.update_params(self.optimizer.get_update(v))
        if self.machine.has_nan():
            return update_norm, "parameters contain NaN or Inf after update"
        return update_norm, None
