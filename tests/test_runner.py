from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pytest

from srnqs.nqs.rbm import Rbm
from srnqs.nqs.serialization import load_machine
from srnqs.optim.optimizers import Sgd
from srnqs.physics.basis import sector_basis
from srnqs.physics.exact import exact_ground_state
from srnqs.physics.hamiltonians import Xxz
from srnqs.sampling.sampler import MultiChainSampler, random_sigma
from srnqs.sampling.sweepers import SwapSweeper
from srnqs.types import ScalarArray
from srnqs.utils.rng import RngStreams
from srnqs.vmc.runner import IterationMetrics, Runner


def _machine(n: int = 4, m: int = 8, seed: int = 0, sigma: float = 0.01) -> Rbm:
    machine = Rbm(n, m, dtype="real")
    machine.initialize_random(np.random.default_rng(seed), sigma=sigma)
    return machine


class _NanOptimizer:
    def get_update(self, grad: ScalarArray) -> ScalarArray:
        return np.full_like(grad, np.nan)

    def describe(self) -> dict[str, object]:
        return {"name": "nan"}


def test_exact_sr_reaches_heisenberg_ground_state() -> None:
    ham = Xxz(4, J=1.0, delta=1.0, sign_rule=True)
    basis = sector_basis(4, 2)
    exact = exact_ground_state(ham, basis).energy
    assert np.isclose(exact, -8.0)

    runner = Runner(
        _machine(),
        Sgd(eta=0.05),
        lambda_ini=1.0,
        lambda_decay=0.9,
        lambda_min=1.0e-4,
        solver="cholesky",
    )
    history = runner.run_exact(basis, ham, n_iterations=200)

    assert len(history) == 200
    assert [m.iteration for m in history] == list(range(200))
    assert all(m.error is None for m in history)

    energies = np.array([m.energy for m in history])
    moving = np.convolve(energies, np.ones(10) / 10.0, mode="valid")
    assert np.all(np.diff(moving) < 1.0e-3)
    assert moving[-1] < moving[0]
    assert abs(energies[-1] - exact) < 0.01 * abs(exact)
    assert all(m.eloc_imag == 0.0 for m in history)


def test_sampled_sr_reaches_heisenberg_ground_state() -> None:
    ham = Xxz(4, J=1.0, delta=1.0, sign_rule=True)
    exact = exact_ground_state(ham, sector_basis(4, 2)).energy

    machine = _machine(seed=3)
    sampler = MultiChainSampler(
        machine,
        SwapSweeper(4),
        n_chains=4,
        streams=RngStreams(seed=21),
        randomizer=lambda rng: random_sigma(4, rng, n_up=2),
    )
    runner = Runner(
        machine,
        Sgd(eta=0.05),
        lambda_ini=1.0,
        lambda_decay=0.9,
        lambda_min=1.0e-4,
        solver="cg",
        cg_tolerance=1.0e-6,
    )
    history = runner.run(sampler, ham, n_iterations=200, n_sweeps=100, n_therm=20)

    assert len(history) == 200
    assert all(m.error is None for m in history)
    energies = np.array([m.energy for m in history])
    assert abs(np.mean(energies[-10:]) - exact) < 0.01 * abs(exact)


def test_diagonal_shift_follows_floored_geometric_schedule() -> None:
    runner = Runner(_machine(), Sgd(eta=0.01), lambda_ini=1.0, lambda_decay=0.5, lambda_min=0.1)
    assert runner.diagonal_shift(0) == 1.0
    assert runner.diagonal_shift(2) == 0.25
    assert runner.diagonal_shift(10) == 0.1

    history = runner.run_exact(sector_basis(4, 2), Xxz(4, sign_rule=True), n_iterations=4)
    assert [m.diagonal_shift for m in history] == [1.0, 0.5, 0.25, 0.125]


def test_plain_gradient_descent_without_sr_lowers_energy() -> None:
    runner = Runner(_machine(sigma=0.1), Sgd(eta=0.02), use_sr=False)
    history = runner.run_exact(sector_basis(4, 2), Xxz(4, sign_rule=True), n_iterations=40)
    assert history[-1].energy is not None and history[0].energy is not None
    assert history[-1].energy < history[0].energy
    assert all(m.cg_iterations == 0 for m in history)


def test_callback_returning_false_stops_the_run() -> None:
    seen: list[IterationMetrics] = []

    def callback(metrics: IterationMetrics) -> bool:
        seen.append(metrics)
        return metrics.iteration < 2

    runner = Runner(_machine(), Sgd(eta=0.05), solver="cholesky")
    history = runner.run_exact(sector_basis(4, 2), Xxz(4), n_iterations=10, callback=callback)
    assert len(history) == 3
    assert seen == history


def test_cg_failure_is_reported_and_no_update_applied() -> None:
    machine = _machine(sigma=0.2)
    before = machine.get_params()
    sampler = MultiChainSampler(
        machine,
        SwapSweeper(4),
        n_chains=2,
        streams=RngStreams(seed=1),
        randomizer=lambda rng: random_sigma(4, rng, n_up=2),
    )
    runner = Runner(machine, Sgd(eta=0.05), cg_tolerance=1.0e-14, cg_max_iterations=1)

    history = runner.run(sampler, Xxz(4, sign_rule=True), n_iterations=3, n_sweeps=50, n_therm=5)

    assert len(history) == 3
    for metrics in history:
        assert metrics.error is not None
        assert "cg" in metrics.error
        assert np.isnan(metrics.update_norm)
        assert metrics.cg_iterations == 1
    np.testing.assert_array_equal(machine.get_params(), before)


def test_nan_parameters_are_reported_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    runner = Runner(_machine(), _NanOptimizer(), solver="cholesky")
    with caplog.at_level(logging.WARNING, logger="srnqs.vmc.runner"):
        history = runner.run_exact(sector_basis(4, 2), Xxz(4), n_iterations=1)

    assert history[0].error is not None
    assert "NaN" in history[0].error
    assert runner.machine.has_nan()
    assert any("numerical_failure" in r.getMessage() for r in caplog.records)


def test_sampled_run_reports_metrics() -> None:
    for cg_jacobi in (False, True):
        _check_sampled_run(cg_jacobi)


def _check_sampled_run(cg_jacobi: bool) -> None:
    machine = _machine(sigma=0.05)
    sampler = MultiChainSampler(
        machine,
        SwapSweeper(4),
        n_chains=2,
        streams=RngStreams(seed=2),
        randomizer=lambda rng: random_sigma(4, rng, n_up=2),
    )
    runner = Runner(
        machine,
        Sgd(eta=0.02),
        cg_tolerance=1.0e-6,
        cg_max_iterations=200,
        cg_jacobi=cg_jacobi,
    )
    history = runner.run(sampler, Xxz(4, sign_rule=True), n_iterations=5, n_sweeps=40, n_therm=5)

    assert len(history) == 5
    for metrics in history:
        assert metrics.error is None
        assert metrics.energy is not None and np.isfinite(metrics.energy)
        assert metrics.acceptance_rate is not None and 0.0 <= metrics.acceptance_rate <= 1.0
        assert metrics.sampling_seconds >= 0.0
        assert metrics.update_norm > 0.0
        assert metrics.eloc_imag == 0.0


def test_checkpoints_are_written_every_save_every(tmp_path: Path) -> None:
    machine = _machine()
    initial = machine.copy()
    runner = Runner(
        machine,
        Sgd(eta=0.05),
        solver="cholesky",
        save_every=2,
        checkpoint_dir=tmp_path,
    )
    runner.run_exact(sector_basis(4, 2), Xxz(4, sign_rule=True), n_iterations=5)

    names = sorted(p.name for p in tmp_path.glob("*.npz"))
    assert names == ["w0000.npz", "w0002.npz", "w0004.npz"]
    assert load_machine(tmp_path / "w0000.npz") == initial
    assert load_machine(tmp_path / "w0004.npz") != initial


def test_supervised_fit_raises_fidelity() -> None:
    ham = Xxz(4, sign_rule=True)
    basis = sector_basis(4, 2)
    target = exact_ground_state(ham, basis).vector

    runner = Runner(_machine(sigma=0.05), Sgd(eta=0.1), solver="cholesky")
    history = runner.run_supervised(basis, target, n_iterations=150)

    assert all(m.energy is None and m.eloc_imag is None for m in history)
    fidelities = [m.fidelity for m in history]
    assert all(f is not None and 0.0 <= f <= 1.0 + 1.0e-12 for f in fidelities)
    assert fidelities[-1] > fidelities[0]
    assert fidelities[-1] > 0.98
