from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TypeVar

import numpy as np

from srnqs.nqs.rbm import Rbm
from srnqs.nqs.state import RbmStateRef, Snapshot
from srnqs.physics.basis import to_sigma
from srnqs.physics.hamiltonians import Hamiltonian, local_energy
from srnqs.types import ComplexArray, FloatArray, ScalarArray
from srnqs.utils.logging import log_event
from srnqs.utils.statistics import MeanWithError, blocking_error_bars, clipped_blocking

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SrAccumulator:
    """Weighted partial sums over a chunk of configurations.

    ``merge`` is associative, so chunks can be reduced in any grouping;
    only floating-point rounding depends on the partition.
    """

    weight: float
    sum_o: ScalarArray
    sum_e: complex
    sum_oe: ComplexArray
    sum_oo: ScalarArray | None = None

    @classmethod
    def from_rows(
        cls,
        operators: ScalarArray,
        energies: ComplexArray,
        weights: FloatArray,
        dense: bool = False,
    ) -> SrAccumulator:
        conj_o = np.conj(operators)
        return cls(
            weight=float(np.sum(weights)),
            sum_o=weights @ operators,
            sum_e=complex(np.sum(weights * energies)),
            sum_oe=(weights * energies) @ conj_o,
            sum_oo=(conj_o.T * weights) @ operators if dense else None,
        )

    def merge(self, other: SrAccumulator) -> SrAccumulator:
        if (self.sum_oo is None) != (other.sum_oo is None):
            raise ValueError("cannot merge dense and matrix-free accumulators")
        sum_oo = None
        if self.sum_oo is not None and other.sum_oo is not None:
            sum_oo = self.sum_oo + other.sum_oo
        return SrAccumulator(
            weight=self.weight + other.weight,
            sum_o=self.sum_o + other.sum_o,
            sum_e=self.sum_e + other.sum_e,
            sum_oe=self.sum_oe + other.sum_oe,
            sum_oo=sum_oo,
        )

    @property
    def mean_o(self) -> ScalarArray:
        return self.sum_o / self.weight

    @property
    def mean_e(self) -> complex:
        return self.sum_e / self.weight

    def force(self, real: bool) -> ScalarArray:
        """``<O* E> - <O*> <E>``."""

        f = self.sum_oe / self.weight - np.conj(self.mean_o) * self.mean_e
        return np.real(f) if real else f

    def covariance(self) -> ScalarArray:
        """``<O* O^T> - <O*> <O^T>``; needs a dense accumulator."""

        if self.sum_oo is None:
            raise ValueError("covariance requires a dense accumulator")
        mean_o = self.mean_o
        return self.sum_oo / self.weight - np.outer(np.conj(mean_o), mean_o)


def _chunks(n_items: int, n_workers: int) -> list[np.ndarray]:
    n_parts = max(1, min(n_workers, n_items))
    return [part for part in np.array_split(np.arange(n_items), n_parts) if part.size]


def _map_chunks(
    fn: Callable[[np.ndarray], T],
    n_items: int,
    n_workers: int,
) -> list[T]:
    parts = _chunks(n_items, n_workers)
    if n_workers == 1 or len(parts) == 1:
        return [fn(part) for part in parts]
    with ThreadPoolExecutor(max_workers=n_workers) as pool:
        return list(pool.map(fn, parts))


def _reduce(partials: Sequence[SrAccumulator]) -> SrAccumulator:
    total = partials[0]
    for part in partials[1:]:
        total = total.merge(part)
    return total


def evaluate_configurations(
    machine: Rbm,
    configurations: Sequence[tuple[np.ndarray, np.ndarray]],
    hamiltonian: Hamiltonian,
    n_workers: int = 1,
) -> tuple[ScalarArray, ComplexArray, ScalarArray]:
    """Log-derivatives, local energies and log-amplitudes of ``(sigma, theta)`` pairs."""

    n_items = len(configurations)
    if n_items == 0:
        raise ValueError("need at least one configuration")

    def evaluate(part: np.ndarray) -> tuple[ScalarArray, ComplexArray, ScalarArray]:
        ops = np.empty((part.size, machine.dim), dtype=machine.dtype)
        energies = np.empty(part.size, dtype=np.complex128)
        logs = np.empty(part.size, dtype=machine.dtype)
        for row, idx in enumerate(part):
            sigma, theta = configurations[int(idx)]
            state = RbmStateRef(machine, sigma, theta)
            ops[row] = state.log_deriv()
            energies[row] = local_energy(state, hamiltonian)
            logs[row] = state.log_coeff()
        return ops, energies, logs

    results = _map_chunks(evaluate, n_items, n_workers)
    operators = np.concatenate([r[0] for r in results], axis=0)
    energies = np.concatenate([r[1] for r in results])
    logs = np.concatenate([r[2] for r in results])
    return operators, energies, logs


def accumulate(
    operators: ScalarArray,
    energies: ComplexArray,
    weights: FloatArray,
    dense: bool = False,
    n_workers: int = 1,
) -> SrAccumulator:
    partials = _map_chunks(
        lambda part: SrAccumulator.from_rows(
            operators[part], energies[part], weights[part], dense=dense
        ),
        operators.shape[0],
        n_workers,
    )
    return _reduce(partials)


class SrMatFree:
    """Sampled SR quantities with a matrix-free covariance operator.

    Only the centered log-derivative rows are kept; ``S`` is applied as
    ``C^H (C x) / N`` and never stored. A warning is logged when
    ``|Im <E_loc>|`` exceeds ``imag_tolerance`` plus ``imag_sigmas`` blocking
    standard errors of the imaginary part.
    """

    def __init__(
        self,
        machine: Rbm,
        shift: float = 0.0,
        n_workers: int = 1,
        imag_tolerance: float = 1.0e-8,
        imag_sigmas: float = 5.0,
        n_bins: int = 10,
    ) -> None:
        if n_workers < 1:
            raise ValueError("n_workers must be >= 1")
        self.machine = machine
        self.shift = shift
        self.n_workers = n_workers
        self.imag_tolerance = imag_tolerance
        self.imag_sigmas = imag_sigmas
        self.n_bins = n_bins
        self._centered: ScalarArray | None = None
        self._energies: ComplexArray | None = None
        self._acc: SrAccumulator | None = None

    def construct_from_sampling(
        self,
        samples: Sequence[Snapshot],
        hamiltonian: Hamiltonian,
    ) -> None:
        if hamiltonian.n_sites != self.machine.n:
            raise ValueError(
                f"hamiltonian has {hamiltonian.n_sites} sites, machine has {self.machine.n}"
            )
        configurations = [(s.sigma, s.theta) for s in samples]
        operators, energies, _ = evaluate_configurations(
            self.machine, configurations, hamiltonian, n_workers=self.n_workers
        )
        weights = np.full(operators.shape[0], 1.0 / operators.shape[0], dtype=np.float64)
        self._acc = accumulate(operators, energies, weights, n_workers=self.n_workers)
        self._centered = operators - self._acc.mean_o[None, :]
        self._energies = energies

        imag = clipped_blocking(np.imag(energies), self.n_bins)
        limit = self.imag_tolerance + self.imag_sigmas * imag.stderr
        if abs(self.eloc_imag) > limit:
            log_event(
                logger,
                "energy_imaginary_part",
                level=logging.WARNING,
                imag=self.eloc_imag,
                stderr=imag.stderr,
                tolerance=limit,
            )

    def _require(self) -> tuple[ScalarArray, ComplexArray, SrAccumulator]:
        if self._centered is None or self._energies is None or self._acc is None:
            raise RuntimeError("call construct_from_sampling first")
        return self._centered, self._energies, self._acc

    @property
    def n_samples(self) -> int:
        return self._require()[0].shape[0]

    @property
    def local_energies(self) -> ComplexArray:
        return self._require()[1]

    def eloc(self) -> float:
        return float(np.real(self._require()[2].mean_e))

    @property
    def eloc_imag(self) -> float:
        return float(np.imag(self._require()[2].mean_e))

    def eloc_error(self, n_bins: int) -> MeanWithError:
        return blocking_error_bars(np.real(self.local_energies), n_bins)

    def get_f(self) -> ScalarArray:
        return self._require()[2].force(real=not self.machine.is_complex)

    energy_grad = get_f

    def apply(self, x: ScalarArray) -> ScalarArray:
        """``(S + shift) x``."""

        centered = self._require()[0]
        if x.ndim != 1 or x.shape[0] != centered.shape[1]:
            raise ValueError(f"x must have shape ({centered.shape[1]},), received {x.shape}")
        projected = centered @ x
        return (np.conj(centered).T @ projected) / centered.shape[0] + self.shift * x

    def diagonal(self) -> FloatArray:
        """Diagonal of ``S + shift``, for Jacobi preconditioning."""

        centered = self._require()[0]
        return np.sum(np.abs(centered) ** 2, axis=0) / centered.shape[0] + self.shift

    def explicit_matrix(self) -> ScalarArray:
        """Materialize ``S`` (without the shift) for tests/debugging only."""

        centered = self._require()[0]
        return (np.conj(centered).T @ centered) / centered.shape[0]


class SrMatExact:
    """SR quantities from full enumeration of a basis, weighted by ``|psi|^2``."""

    def __init__(
        self,
        machine: Rbm,
        basis: Sequence[int],
        hamiltonian: Hamiltonian,
        imag_tolerance: float = 1.0e-8,
        n_workers: int = 1,
    ) -> None:
        if not basis:
            raise ValueError("basis must not be empty")
        if hamiltonian.n_sites != machine.n:
            raise ValueError(
                f"hamiltonian has {hamiltonian.n_sites} sites, machine has {machine.n}"
            )
        self.machine = machine
        self.basis = list(basis)
        self.hamiltonian = hamiltonian
        self.imag_tolerance = imag_tolerance
        self.n_workers = n_workers
        self._data: tuple[SrAccumulator, ComplexArray, FloatArray] | None = None

    def construct_exact(self) -> None:
        configurations = [
            self.machine.make_data(to_sigma(self.machine.n, idx)) for idx in self.basis
        ]
        operators, energies, logs = evaluate_configurations(
            self.machine, configurations, self.hamiltonian, n_workers=self.n_workers
        )
        log_prob = 2.0 * np.real(logs)
        weights = np.exp(log_prob - np.max(log_prob))
        weights = weights / np.sum(weights)

        acc = accumulate(operators, energies, weights, dense=True, n_workers=self.n_workers)
        self._data = (acc, energies, weights)

        if abs(self.eloc_imag) > self.imag_tolerance:
            log_event(
                logger,
                "energy_imaginary_part",
                level=logging.WARNING,
                imag=self.eloc_imag,
                tolerance=self.imag_tolerance,
            )

    def _require(self) -> tuple[SrAccumulator, ComplexArray, FloatArray]:
        if self._data is None:
            raise RuntimeError("call construct_exact first")
        return self._data

    @property
    def weights(self) -> FloatArray:
        """Normalized ``|psi|^2`` over the basis."""

        return self._require()[2]

    @property
    def local_energies(self) -> ComplexArray:
        return self._require()[1]

    def eloc(self) -> float:
        return float(np.real(self._require()[0].mean_e))

    @property
    def eloc_imag(self) -> float:
        return float(np.imag(self._require()[0].mean_e))

    def get_f(self) -> ScalarArray:
        return self._require()[0].force(real=not self.machine.is_complex)

    energy_grad = get_f

    def corr_mat(self) -> ScalarArray:
        cov = self._require()[0].covariance()
        return np.real(cov) if not self.machine.is_complex else cov
