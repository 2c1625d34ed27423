from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

import numpy as np
import numpy.typing as npt

from srnqs.nqs.rbm import Rbm
from srnqs.nqs.state import RbmStateValue, Snapshot
from srnqs.sampling.sweepers import Sweeper
from srnqs.types import SpinArray
from srnqs.utils.rng import RngStreams

logger = logging.getLogger(__name__)

Randomizer = Callable[[np.random.Generator], SpinArray]


class ChainState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    THERMALIZING = "thermalizing"
    SAMPLING = "sampling"
    DONE = "done"


class SampleSource(Protocol):
    """Anything producing snapshots distributed according to ``|psi|^2``."""

    @property
    def acceptance_rate(self) -> float: ...

    def sampling(self, n_sweeps: int, n_therm: int) -> list[Snapshot]: ...


def random_sigma(n_sites: int, rng: np.random.Generator, n_up: int | None = None) -> SpinArray:
    """Uniform random spins, or a random arrangement with exactly ``n_up`` up spins."""

    if n_up is None:
        return (2 * rng.integers(0, 2, size=n_sites) - 1).astype(np.int8)
    if n_up < 0 or n_up > n_sites:
        raise ValueError(f"n_up must be in [0, {n_sites}], received {n_up}")
    sigma = np.full(n_sites, -1, dtype=np.int8)
    sigma[:n_up] = 1
    return rng.permutation(sigma)


class Sampler:
    """Single Markov chain over an :class:`RbmStateValue`.

    Lifecycle: ``randomize_sigma`` (or ``start``) moves the chain to
    thermalizing; ``sampling`` thermalizes, records one snapshot per sweep
    and leaves the chain done. A finished chain must be restarted before it
    can sample again.
    """

    def __init__(self, machine: Rbm, sweeper: Sweeper, rng: np.random.Generator) -> None:
        self.machine = machine
        self.sweeper = sweeper
        self.rng = rng
        self._state_value: RbmStateValue | None = None
        self._chain_state = ChainState.UNINITIALIZED
        self._accepted = 0
        self._proposed = 0

    @property
    def chain_state(self) -> ChainState:
        return self._chain_state

    @property
    def state_value(self) -> RbmStateValue:
        if self._state_value is None:
            raise RuntimeError("sampler has no configuration; call randomize_sigma first")
        return self._state_value

    @property
    def accepted(self) -> int:
        """Accepted moves during the sampling phase of the current chain."""

        return self._accepted

    @property
    def proposed(self) -> int:
        return self._proposed

    @property
    def acceptance_rate(self) -> float:
        if self._proposed == 0:
            return 0.0
        return self._accepted / self._proposed

    def start(self, sigma: npt.ArrayLike) -> None:
        """Begin a new chain from ``sigma``."""

        self._state_value = RbmStateValue(self.machine, sigma)
        self._chain_state = ChainState.THERMALIZING
        self._accepted = 0
        self._proposed = 0

    def randomize_sigma(self, n_up: int | None = None) -> None:
        self.start(random_sigma(self.machine.n, self.rng, n_up=n_up))

    def sweep(self) -> None:
        if self._chain_state not in (ChainState.THERMALIZING, ChainState.SAMPLING):
            raise RuntimeError(f"cannot sweep a chain in state {self._chain_state.value}")
        accepted, proposed = self.sweeper.sweep(self.state_value, self.rng)
        if self._chain_state is ChainState.SAMPLING:
            self._accepted += accepted
            self._proposed += proposed

    def sampling(self, n_sweeps: int, n_therm: int) -> list[Snapshot]:
        if self._chain_state is not ChainState.THERMALIZING:
            raise RuntimeError(
                f"sampling requires a freshly randomized chain, state is {self._chain_state.value}"
            )
        if n_sweeps < 1:
            raise ValueError("n_sweeps must be >= 1")
        if n_therm < 0:
            raise ValueError("n_therm must be >= 0")

        for _ in range(n_therm):
            self.sweep()

        self._chain_state = ChainState.SAMPLING
        samples: list[Snapshot] = []
        for _ in range(n_sweeps):
            self.sweep()
            samples.append(self.state_value.data())

        self._chain_state = ChainState.DONE
        return samples


class MultiChainSampler:
    """Independent chains sharing one read-only machine.

    Every ``sampling`` call restarts all chains from ``randomizer`` and
    returns ``n_chains * n_sweeps`` snapshots in chain order.
    """

    def __init__(
        self,
        machine: Rbm,
        sweeper: Sweeper,
        n_chains: int,
        streams: RngStreams,
        randomizer: Randomizer | None = None,
        n_workers: int = 1,
    ) -> None:
        if n_chains < 1:
            raise ValueError("n_chains must be >= 1")
        if n_workers < 1:
            raise ValueError("n_workers must be >= 1")

        self.machine = machine
        self.n_workers = n_workers
        self.randomizer: Randomizer = (
            randomizer
            if randomizer is not None
            else lambda rng: random_sigma(machine.n, rng)
        )
        self.chains = [Sampler(machine, sweeper, rng) for rng in streams.spawn(n_chains)]

    @property
    def n_chains(self) -> int:
        return len(self.chains)

    @property
    def acceptance_rate(self) -> float:
        accepted = sum(chain.accepted for chain in self.chains)
        proposed = sum(chain.proposed for chain in self.chains)
        if proposed == 0:
            return 0.0
        return accepted / proposed

    def _run_chain(self, chain: Sampler, n_sweeps: int, n_therm: int) -> list[Snapshot]:
        chain.start(self.randomizer(chain.rng))
        return chain.sampling(n_sweeps, n_therm)

    def sampling(self, n_sweeps: int, n_therm: int) -> list[Snapshot]:
        if self.n_workers == 1:
            per_chain = [self._run_chain(chain, n_sweeps, n_therm) for chain in self.chains]
        else:
            with ThreadPoolExecutor(max_workers=self.n_workers) as pool:
                futures = [
                    pool.submit(self._run_chain, chain, n_sweeps, n_therm)
                    for chain in self.chains
                ]
                per_chain = [future.result() for future in futures]

        logger.debug(
            "sampled %d chains x %d sweeps, acceptance %.3f",
            self.n_chains,
            n_sweeps,
            self.acceptance_rate,
        )
        return [snapshot for chain_samples in per_chain for snapshot in chain_samples]
