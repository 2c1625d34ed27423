from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Any, Protocol

import numpy as np

from srnqs.types import IntArray, Sites, SpinArray

Connection = tuple[Sites, float]


class Hamiltonian(Protocol):
    """Spin Hamiltonian in the sigma^z basis.

    ``off_diagonal`` lists every configuration connected to ``spins`` as the
    tuple of flipped sites together with the matrix element
    ``<spins'|H|spins>``.
    """

    @property
    def n_sites(self) -> int: ...

    def diagonal(self, spins: SpinArray) -> float: ...

    def off_diagonal(self, spins: SpinArray) -> list[Connection]: ...

    def describe(self) -> dict[str, Any]: ...


class AmplitudeRatios(Protocol):
    """Anything able to return ``psi(sigma with sites flipped) / psi(sigma)``."""

    @property
    def sigma(self) -> SpinArray: ...

    def ratio(self, sites: Sites) -> float | complex: ...


def local_energy(state: AmplitudeRatios, hamiltonian: Hamiltonian) -> complex:
    """``E_loc(sigma) = sum_sigma' H(sigma, sigma') psi(sigma') / psi(sigma)``."""

    spins = state.sigma
    value: complex = complex(hamiltonian.diagonal(spins))
    for sites, element in hamiltonian.off_diagonal(spins):
        value += element * state.ratio(sites)
    return value


def build_chain_bonds(n_sites: int, periodic: bool = True) -> IntArray:
    """Nearest-neighbor bonds ``(i, i+1)`` of a 1D chain."""

    if n_sites < 2:
        raise ValueError("a chain needs at least 2 sites")
    last = n_sites if periodic else n_sites - 1
    bonds = [(i, (i + 1) % n_sites) for i in range(last)]
    return np.asarray(bonds, dtype=np.int64)


@dataclass(frozen=True)
class SquareLattice:
    """Periodic LxL square lattice in row-major index order."""

    L: int

    def __post_init__(self) -> None:
        if self.L < 2:
            raise ValueError("L must be >= 2 for periodic lattices")

    @property
    def n_spins(self) -> int:
        return self.L * self.L

    def index(self, row: int, col: int) -> int:
        return (row % self.L) * self.L + (col % self.L)

    @property
    def bonds(self) -> IntArray:
        """Right and down neighbor of every site, each undirected bond once."""

        out: list[tuple[int, int]] = []
        for r in range(self.L):
            for c in range(self.L):
                i = self.index(r, c)
                out.append((i, self.index(r, c + 1)))
                out.append((i, self.index(r + 1, c)))
        return np.asarray(out, dtype=np.int64)


@dataclass(frozen=True)
class Xxz:
    """Spin-1/2 XXZ chain ``H = J sum (sx sx + sy sy + delta sz sz)`` in Pauli units.

    With ``sign_rule`` the exchange elements become ``-2J`` (Marshall sign
    absorbed into the basis), so the antiferromagnetic ground state has
    positive amplitudes and a real RBM can represent it.
    """

    n: int
    J: float = 1.0
    delta: float = 1.0
    sign_rule: bool = False
    periodic: bool = True

    def __post_init__(self) -> None:
        if self.n < 2:
            raise ValueError("n must be >= 2")

    @property
    def n_sites(self) -> int:
        return self.n

    @cached_property
    def bonds(self) -> IntArray:
        return build_chain_bonds(self.n, periodic=self.periodic)

    def diagonal(self, spins: SpinArray) -> float:
        pair_products = spins[self.bonds[:, 0]] * spins[self.bonds[:, 1]]
        return float(self.J * self.delta * np.sum(pair_products, dtype=np.float64))

    def off_diagonal(self, spins: SpinArray) -> list[Connection]:
        element = -2.0 * self.J if self.sign_rule else 2.0 * self.J
        return [
            ((int(i), int(j)), element)
            for i, j in self.bonds
            if spins[i] != spins[j]
        ]

    def describe(self) -> dict[str, Any]:
        return {
            "name": "XXZ",
            "n": self.n,
            "J": self.J,
            "delta": self.delta,
            "sign_rule": self.sign_rule,
            "periodic": self.periodic,
        }


@dataclass(frozen=True, eq=False)
class TransverseIsing:
    """TFIM ``H = -J sum_<ij> sz sz - gamma sum_i sx`` on an arbitrary bond list."""

    n: int
    bonds: IntArray
    J: float = 1.0
    gamma: float = 1.0

    def __post_init__(self) -> None:
        if self.gamma <= 0.0:
            raise ValueError("gamma must be > 0")
        if self.bonds.ndim != 2 or self.bonds.shape[1] != 2:
            raise ValueError("bonds must have shape (n_bonds, 2)")
        if np.any(self.bonds < 0) or np.any(self.bonds >= self.n):
            raise ValueError("bond index out of range")

    @property
    def n_sites(self) -> int:
        return self.n

    def diagonal(self, spins: SpinArray) -> float:
        pair_products = spins[self.bonds[:, 0]] * spins[self.bonds[:, 1]]
        return float(-self.J * np.sum(pair_products, dtype=np.float64))

    def off_diagonal(self, spins: SpinArray) -> list[Connection]:
        return [((i,), -self.gamma) for i in range(self.n)]

    def describe(self) -> dict[str, Any]:
        return {
            "name": "TFIM",
            "n": self.n,
            "n_bonds": int(self.bonds.shape[0]),
            "J": self.J,
            "gamma": self.gamma,
        }
