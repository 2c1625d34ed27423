from __future__ import annotations

import numpy as np
import pytest

from srnqs.nqs.rbm import Rbm, get_psi
from srnqs.physics.basis import sector_basis, to_index
from srnqs.physics.hamiltonians import build_chain_bonds
from srnqs.sampling.sampler import ChainState, MultiChainSampler, Sampler, random_sigma
from srnqs.sampling.sweepers import FlipListSweeper, LocalSweeper, SwapSweeper, metropolis_accept
from srnqs.utils.rng import RngStreams


def _machine(seed: int = 2) -> Rbm:
    machine = Rbm(4, 4)
    machine.initialize_random(np.random.default_rng(seed), sigma=0.4)
    return machine


def _histogram(samples: list, n_states: int) -> np.ndarray:
    counts = np.zeros(n_states, dtype=np.float64)
    for snap in samples:
        counts[to_index(snap.sigma)] += 1.0
    return counts / counts.sum()


def test_random_sigma_respects_magnetization() -> None:
    rng = np.random.default_rng(0)
    sigma = random_sigma(10, rng, n_up=3)
    assert sigma.dtype == np.int8
    assert int(np.sum(sigma == 1)) == 3
    with pytest.raises(ValueError):
        random_sigma(4, rng, n_up=5)


def test_metropolis_always_accepts_uphill_moves() -> None:
    rng = np.random.default_rng(0)
    assert metropolis_accept(0.0, rng)
    assert metropolis_accept(0.3 + 2.0j, rng)
    assert not any(metropolis_accept(-50.0, rng) for _ in range(100))


def test_sampler_lifecycle() -> None:
    sampler = Sampler(_machine(), LocalSweeper(4), np.random.default_rng(1))
    assert sampler.chain_state is ChainState.UNINITIALIZED
    with pytest.raises(RuntimeError):
        sampler.sweep()
    with pytest.raises(RuntimeError):
        sampler.sampling(10, 5)

    sampler.randomize_sigma()
    assert sampler.chain_state is ChainState.THERMALIZING
    samples = sampler.sampling(10, 5)
    assert len(samples) == 10
    assert sampler.chain_state is ChainState.DONE
    assert 0.0 <= sampler.acceptance_rate <= 1.0

    with pytest.raises(RuntimeError):
        sampler.sampling(10, 5)
    with pytest.raises(RuntimeError):
        sampler.sweep()

    sampler.randomize_sigma(n_up=2)
    assert len(sampler.sampling(3, 0)) == 3


def test_snapshots_carry_consistent_theta() -> None:
    machine = _machine()
    sampler = Sampler(machine, LocalSweeper(4), np.random.default_rng(3))
    sampler.randomize_sigma()
    for snap in sampler.sampling(20, 2):
        np.testing.assert_allclose(snap.theta, machine.calc_theta(snap.sigma), atol=1.0e-12)


def test_local_sweeper_histogram_matches_born_distribution() -> None:
    machine = _machine()
    sampler = MultiChainSampler(machine, LocalSweeper(4), n_chains=4, streams=RngStreams(seed=7))
    samples = sampler.sampling(n_sweeps=5_000, n_therm=50)
    assert len(samples) == 20_000

    expected = np.abs(get_psi(machine)) ** 2
    np.testing.assert_allclose(_histogram(samples, 16), expected, atol=0.02)


def test_swap_sweeper_stays_in_sector_and_matches_distribution() -> None:
    machine = _machine(seed=4)
    sampler = MultiChainSampler(
        machine,
        SwapSweeper(4),
        n_chains=4,
        streams=RngStreams(seed=8),
        randomizer=lambda rng: random_sigma(4, rng, n_up=2),
    )
    samples = sampler.sampling(n_sweeps=4_000, n_therm=50)
    assert all(int(np.sum(s.sigma)) == 0 for s in samples)

    basis = sector_basis(4, 2)
    expected = np.abs(get_psi(machine, basis)) ** 2
    hist = _histogram(samples, 16)[basis]
    np.testing.assert_allclose(hist, expected, atol=0.02)


def test_flip_list_sweeper_uses_given_moves() -> None:
    machine = _machine()
    sweeper = FlipListSweeper([(0, 1), (2, 3)])
    sampler = Sampler(machine, sweeper, np.random.default_rng(5))
    sampler.start(np.array([1, 1, -1, -1], dtype=np.int8))
    for snap in sampler.sampling(50, 0):
        # pair flips keep sigma_0 * sigma_1 and sigma_2 * sigma_3 fixed
        assert snap.sigma[0] * snap.sigma[1] == 1
        assert snap.sigma[2] * snap.sigma[3] == 1


def test_bond_pair_flips_preserve_parity() -> None:
    machine = _machine()
    sweeper = FlipListSweeper.from_bonds(build_chain_bonds(4))
    assert sweeper.flips == ((0, 1), (1, 2), (2, 3), (3, 0))

    sampler = Sampler(machine, sweeper, np.random.default_rng(6))
    sampler.start(np.array([1, 1, 1, -1], dtype=np.int8))
    for snap in sampler.sampling(50, 0):
        assert int(np.prod(snap.sigma)) == -1


def test_multi_chain_results_do_not_depend_on_worker_count() -> None:
    machine = _machine()
    serial = MultiChainSampler(machine, LocalSweeper(4), 3, RngStreams(seed=9), n_workers=1)
    threaded = MultiChainSampler(machine, LocalSweeper(4), 3, RngStreams(seed=9), n_workers=3)

    a = serial.sampling(30, 5)
    b = threaded.sampling(30, 5)
    assert len(a) == len(b) == 90
    for x, y in zip(a, b):
        np.testing.assert_array_equal(x.sigma, y.sigma)


def test_multi_chain_can_sample_repeatedly() -> None:
    sampler = MultiChainSampler(_machine(), LocalSweeper(4), 2, RngStreams(seed=1))
    assert len(sampler.sampling(5, 1)) == 10
    assert len(sampler.sampling(5, 1)) == 10
    assert 0.0 <= sampler.acceptance_rate <= 1.0
    accepted = sum(chain.accepted for chain in sampler.chains)
    proposed = sum(chain.proposed for chain in sampler.chains)
    assert proposed == 2 * 5 * 4
    assert sampler.acceptance_rate == accepted / proposed
