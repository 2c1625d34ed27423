from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from srnqs.config.schemas import MachineConfig, OptimizerConfig, RunConfig
from srnqs.nqs.rbm import Rbm
from srnqs.optim.optimizers import Adam, Optimizer, Sgd
from srnqs.optim.sr import SrMatExact, SrMatFree
from srnqs.physics.basis import full_basis, sector_basis
from srnqs.physics.exact import exact_ground_state
from srnqs.physics.hamiltonians import Hamiltonian, Xxz
from srnqs.sampling.sampler import MultiChainSampler, SampleSource, random_sigma
from srnqs.sampling.sweepers import LocalSweeper, SwapSweeper
from srnqs.sampling.thrml_backend import ThrmlGibbsSampler
from srnqs.utils.rng import RngStreams
from srnqs.utils.statistics import MeanWithError, clipped_blocking
from srnqs.vmc.runner import Callback, IterationMetrics, Runner


@dataclass(frozen=True)
class TrainingResult:
    """Trained machine with its optimization trace."""

    machine: Rbm
    history: list[IterationMetrics]
    final_eval: MeanWithError


def build_machine(config: MachineConfig, rng: np.random.Generator) -> Rbm:
    machine = Rbm(
        n_visible=config.n_visible,
        n_hidden=config.hidden_units,
        use_bias=config.use_bias,
        dtype=config.dtype,
    )
    machine.initialize_random(rng, sigma=config.init_std)
    return machine


def build_hamiltonian(config: RunConfig) -> Xxz:
    return Xxz(
        n=config.machine.n_visible,
        J=config.hamiltonian.J,
        delta=config.hamiltonian.delta,
        sign_rule=config.hamiltonian.sign_rule,
        periodic=config.hamiltonian.periodic,
    )


def build_optimizer(config: OptimizerConfig) -> Optimizer:
    if config.kind == "adam":
        return Adam(
            alpha=config.learning_rate,
            beta1=config.beta1,
            beta2=config.beta2,
            eps=config.eps,
        )
    return Sgd(eta=config.learning_rate, momentum=config.momentum)


def build_runner(config: RunConfig, machine: Rbm, checkpoint_dir: Path | None = None) -> Runner:
    return Runner(
        machine=machine,
        optimizer=build_optimizer(config.optimizer),
        lambda_ini=config.sr.lambda_ini,
        lambda_decay=config.sr.lambda_decay,
        lambda_min=config.sr.lambda_min,
        use_sr=config.sr.use_sr,
        solver=config.sr.solver,
        cg_tolerance=config.sr.cg_tolerance,
        cg_max_iterations=config.sr.cg_max_iterations,
        cg_jacobi=config.sr.cg_jacobi,
        n_workers=config.sampling.n_workers,
        n_bins=config.blocking_bins,
        save_every=config.save_every,
        checkpoint_dir=checkpoint_dir,
    )


def build_sampler(config: RunConfig, machine: Rbm, streams: RngStreams) -> SampleSource:
    sampling = config.sampling
    if sampling.sweeper == "gibbs":
        return ThrmlGibbsSampler(machine, streams, n_chains=sampling.n_chains)

    n_sites = machine.n
    sweeper = SwapSweeper(n_sites) if sampling.sweeper == "swap" else LocalSweeper(n_sites)
    n_up = sampling.n_up
    return MultiChainSampler(
        machine,
        sweeper,
        n_chains=sampling.n_chains,
        streams=streams,
        randomizer=lambda rng: random_sigma(n_sites, rng, n_up=n_up),
        n_workers=sampling.n_workers,
    )


def config_basis(config: RunConfig) -> list[int]:
    """Enumerated basis: the ``n_up`` sector when fixed, else the full space."""

    n_sites = config.machine.n_visible
    if config.sampling.n_up is None:
        return full_basis(n_sites)
    return sector_basis(n_sites, config.sampling.n_up)


def reference_energy(config: RunConfig) -> float:
    """Exact ground-state energy in :func:`config_basis`; small systems only."""

    return exact_ground_state(build_hamiltonian(config), config_basis(config)).energy


def evaluate_energy(
    machine: Rbm,
    sampler: SampleSource,
    hamiltonian: Hamiltonian,
    n_sweeps: int,
    n_therm: int,
    n_bins: int,
) -> MeanWithError:
    """Final sampled energy with blocking error bars."""

    sr = SrMatFree(machine)
    sr.construct_from_sampling(sampler.sampling(n_sweeps, n_therm), hamiltonian)
    stats = clipped_blocking(np.real(sr.local_energies), n_bins)
    return MeanWithError(mean=sr.eloc(), stderr=stats.stderr)


def train_sampled(
    config: RunConfig,
    checkpoint_dir: Path | None = None,
    callback: Callback | None = None,
) -> TrainingResult:
    """Monte Carlo SR optimization of the XXZ ground state."""

    streams = RngStreams(seed=config.seed)
    machine = build_machine(config.machine, streams.numpy)
    hamiltonian = build_hamiltonian(config)
    sampler = build_sampler(config, machine, streams)
    runner = build_runner(config, machine, checkpoint_dir=checkpoint_dir)

    history = runner.run(
        sampler,
        hamiltonian,
        n_iterations=config.n_iterations,
        n_sweeps=config.sampling.n_sweeps,
        n_therm=config.sampling.n_therm,
        callback=callback,
    )
    final_eval = evaluate_energy(
        machine,
        sampler,
        hamiltonian,
        n_sweeps=config.sampling.n_sweeps,
        n_therm=config.sampling.n_therm,
        n_bins=config.blocking_bins,
    )
    return TrainingResult(machine=machine, history=history, final_eval=final_eval)


def train_exact(
    config: RunConfig,
    checkpoint_dir: Path | None = None,
    callback: Callback | None = None,
) -> TrainingResult:
    """SR optimization with exact expectation values over :func:`config_basis`."""

    streams = RngStreams(seed=config.seed)
    machine = build_machine(config.machine, streams.numpy)
    hamiltonian = build_hamiltonian(config)
    basis = config_basis(config)
    runner = build_runner(config, machine, checkpoint_dir=checkpoint_dir)

    history = runner.run_exact(basis, hamiltonian, config.n_iterations, callback=callback)

    srex = SrMatExact(machine, basis, hamiltonian)
    srex.construct_exact()
    return TrainingResult(
        machine=machine,
        history=history,
        final_eval=MeanWithError(mean=srex.eloc(), stderr=0.0),
    )
