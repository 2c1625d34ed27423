from __future__ import annotations

from dataclasses import dataclass
from typing import cast

import jax
import numpy as np
from jax import Array


@dataclass
class RngStreams:
    """Deterministic random streams for Markov chains and JAX/THRML callers.

    Every chain receives its own ``numpy.random.Generator`` spawned from the
    root seed sequence, so a run is reproducible from ``seed`` alone.
    """

    seed: int

    def __post_init__(self) -> None:
        if self.seed < 0:
            raise ValueError("seed must be non-negative")
        self._seed_sequence = np.random.SeedSequence(self.seed)
        self._np_rng = np.random.default_rng(self._seed_sequence.spawn(1)[0])
        self._jax_key = jax.random.PRNGKey(self.seed)

    @property
    def numpy(self) -> np.random.Generator:
        return self._np_rng

    def spawn(self, n_streams: int) -> list[np.random.Generator]:
        """Independent generators, one per chain."""

        if n_streams < 1:
            raise ValueError("n_streams must be >= 1")
        return [np.random.default_rng(s) for s in self._seed_sequence.spawn(n_streams)]

    def split_jax(self) -> Array:
        self._jax_key, subkey = jax.random.split(self._jax_key)
        return cast(Array, subkey)
