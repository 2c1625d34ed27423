from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Protocol

import numpy as np

from srnqs.nqs.state import RbmStateValue
from srnqs.types import Sites


def metropolis_accept(log_ratio: float | complex, rng: np.random.Generator) -> bool:
    """Accept with probability ``min(1, |psi'/psi|^2)``."""

    log_prob = 2.0 * float(np.real(log_ratio))
    if log_prob >= 0.0:
        return True
    return bool(rng.random() < math.exp(log_prob))


class Sweeper(Protocol):
    """Move-proposal policy for one Monte Carlo sweep.

    ``sweep`` mutates the state and returns ``(accepted, proposed)``.
    """

    def sweep(self, state: RbmStateValue, rng: np.random.Generator) -> tuple[int, int]: ...


class LocalSweeper:
    """``n_sites`` single-site flip proposals per sweep."""

    def __init__(self, n_sites: int) -> None:
        if n_sites < 1:
            raise ValueError("n_sites must be >= 1")
        self.n_sites = n_sites

    def sweep(self, state: RbmStateValue, rng: np.random.Generator) -> tuple[int, int]:
        accepted = 0
        for _ in range(self.n_sites):
            k = int(rng.integers(self.n_sites))
            if metropolis_accept(state.log_ratio(k), rng):
                state.flip(k)
                accepted += 1
        return accepted, self.n_sites


class SwapSweeper:
    """Exchange two random sites; total magnetization is conserved.

    Picking two equal spins is a null move and is not counted as a proposal.
    """

    def __init__(self, n_sites: int) -> None:
        if n_sites < 2:
            raise ValueError("n_sites must be >= 2")
        self.n_sites = n_sites

    def sweep(self, state: RbmStateValue, rng: np.random.Generator) -> tuple[int, int]:
        accepted = 0
        proposed = 0
        sigma = state.sigma
        for _ in range(self.n_sites):
            k, l = (int(s) for s in rng.choice(self.n_sites, size=2, replace=False))
            if sigma[k] == sigma[l]:
                continue
            proposed += 1
            if metropolis_accept(state.log_ratio(k, l), rng):
                state.flip(k, l)
                accepted += 1
        return accepted, proposed


class FlipListSweeper:
    """Proposals drawn uniformly from a fixed list of site tuples."""

    def __init__(self, flips: Sequence[Sites], moves_per_sweep: int | None = None) -> None:
        if not flips:
            raise ValueError("flips must not be empty")
        self.flips: tuple[Sites, ...] = tuple(tuple(int(s) for s in f) for f in flips)
        self.moves_per_sweep = len(self.flips) if moves_per_sweep is None else moves_per_sweep
        if self.moves_per_sweep < 1:
            raise ValueError("moves_per_sweep must be >= 1")

    @classmethod
    def from_bonds(cls, bonds: np.ndarray) -> FlipListSweeper:
        return cls([(int(i), int(j)) for i, j in bonds])

    def sweep(self, state: RbmStateValue, rng: np.random.Generator) -> tuple[int, int]:
        accepted = 0
        for _ in range(self.moves_per_sweep):
            sites = self.flips[int(rng.integers(len(self.flips)))]
            if metropolis_accept(state.log_ratio(sites), rng):
                state.flip(sites)
                accepted += 1
        return accepted, self.moves_per_sweep
