from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias, cast

import jax
import numpy as np
from jax import Array
from jax import numpy as jnp
from thrml import Block, SamplingSchedule, SpinNode, sample_states
from thrml.models import IsingEBM, IsingSamplingProgram, hinton_init
from thrml.pgm import AbstractNode

from srnqs.nqs.rbm import Rbm
from srnqs.nqs.state import Snapshot
from srnqs.types import SpinBatch
from srnqs.utils.rng import RngStreams

FreeSuperBlocks: TypeAlias = list[tuple[Block[AbstractNode], ...] | Block[AbstractNode]]


@dataclass(frozen=True)
class _RbmProgram:
    ebm: IsingEBM
    program: IsingSamplingProgram
    visible_block: Block[AbstractNode]
    hidden_block: Block[AbstractNode]
    free_blocks: list[Block[AbstractNode]]


def _new_spin_node() -> AbstractNode:
    return cast(AbstractNode, SpinNode())  # type: ignore[no-untyped-call]


def _bool_to_spins(state: np.ndarray) -> SpinBatch:
    """Convert THRML bool states back to {-1, +1} spins."""

    return (state.astype(np.int8) * np.int8(2) - np.int8(1)).astype(np.int8)


def _squeeze_chain_axis(samples: np.ndarray) -> np.ndarray:
    if samples.ndim >= 3 and samples.shape[1] == 1:
        return samples[:, 0, ...]
    return samples


def _empty_batch_shape() -> tuple[int]:
    return cast(tuple[int], ())


def _build_program(machine: Rbm) -> _RbmProgram:
    """Ising model whose visible marginal is ``|psi|^2``.

    ``|psi(sigma)|^2 = exp(2 a.sigma) prod_j cosh(theta_j)^2`` and each
    ``cosh`` factor is the trace over one +-1 hidden spin, so the hidden
    layer appears twice with biases ``b`` and couplings ``W``.
    """

    n_visible = machine.n
    n_hidden = machine.m
    w = np.asarray(machine.W, dtype=np.float64)
    b = np.asarray(machine.b, dtype=np.float64)

    visible_nodes = [_new_spin_node() for _ in range(n_visible)]
    hidden_nodes = [_new_spin_node() for _ in range(2 * n_hidden)]
    all_nodes = [*visible_nodes, *hidden_nodes]

    edges: list[tuple[AbstractNode, AbstractNode]] = []
    weights: list[float] = []
    for copy in range(2):
        for j in range(n_hidden):
            hidden = hidden_nodes[copy * n_hidden + j]
            for i in range(n_visible):
                edges.append((visible_nodes[i], hidden))
                weights.append(float(w[j, i]))

    biases = np.concatenate(
        (2.0 * np.asarray(machine.a, dtype=np.float64), b, b)
    ).astype(np.float64)
    weights_array = np.asarray(weights, dtype=np.float64)

    ebm = IsingEBM(
        nodes=all_nodes,
        edges=edges,
        biases=jnp.asarray(biases),
        weights=jnp.asarray(weights_array),
        beta=jnp.asarray(1.0),
    )

    visible_block = Block(visible_nodes)
    hidden_block = Block(hidden_nodes)
    free_blocks = [visible_block, hidden_block]
    free_super_blocks: FreeSuperBlocks = [visible_block, hidden_block]
    program = IsingSamplingProgram(ebm=ebm, free_blocks=free_super_blocks, clamped_blocks=[])

    return _RbmProgram(
        ebm=ebm,
        program=program,
        visible_block=visible_block,
        hidden_block=hidden_block,
        free_blocks=free_blocks,
    )


class ThrmlGibbsSampler:
    """Block-Gibbs sampling of real RBM amplitudes with THRML/JAX.

    Visible and (doubled) hidden layers are updated alternately, so every
    move is accepted. The Ising program is rebuilt on each call because the
    machine parameters change between iterations.
    """

    def __init__(self, machine: Rbm, streams: RngStreams, n_chains: int = 1) -> None:
        if machine.is_complex:
            raise ValueError("block-Gibbs sampling requires a real-valued machine")
        if n_chains < 1:
            raise ValueError("n_chains must be >= 1")
        self.machine = machine
        self.streams = streams
        self.n_chains = n_chains

    @property
    def acceptance_rate(self) -> float:
        return 1.0

    def sample_visible(self, n_sweeps: int, n_therm: int, key: Array) -> SpinBatch:
        if n_sweeps < 1:
            raise ValueError("n_sweeps must be >= 1")
        if n_therm < 0:
            raise ValueError("n_therm must be >= 0")

        compiled = _build_program(self.machine)
        schedule = SamplingSchedule(n_warmup=n_therm, n_samples=n_sweeps, steps_per_sample=1)
        init_key, sample_key = jax.random.split(key, 2)

        init_state = hinton_init(
            init_key,
            compiled.ebm,
            compiled.free_blocks,
            batch_shape=_empty_batch_shape(),
        )
        sampled = sample_states(
            sample_key,
            compiled.program,
            schedule,
            init_state_free=init_state,
            state_clamp=[],
            nodes_to_sample=[compiled.visible_block],
        )
        return _bool_to_spins(_squeeze_chain_axis(np.asarray(sampled[0], dtype=np.bool_)))

    def sampling(self, n_sweeps: int, n_therm: int) -> list[Snapshot]:
        samples: list[Snapshot] = []
        for _ in range(self.n_chains):
            visible = self.sample_visible(n_sweeps, n_therm, self.streams.split_jax())
            for sigma in visible:
                samples.append(Snapshot(sigma=sigma, theta=self.machine.calc_theta(sigma)))
        return samples
