from __future__ import annotations

from srnqs.config.schemas import (
    MachineConfig,
    OptimizerConfig,
    RunConfig,
    SamplingConfig,
    SrConfig,
    XxzConfig,
)


def xxz_small_config(seed: int = 7) -> RunConfig:
    """Small CI/laptop sampled run: 8-site Heisenberg ring, zero-magnetization sector."""

    return RunConfig(
        machine=MachineConfig(n_visible=8, alpha=2, use_bias=True, dtype="real", init_std=0.01),
        hamiltonian=XxzConfig(J=1.0, delta=1.0, sign_rule=True),
        sampling=SamplingConfig(
            n_chains=4,
            n_sweeps=100,
            n_therm=20,
            n_up=4,
            sweeper="swap",
            n_workers=1,
        ),
        sr=SrConfig(
            use_sr=True,
            lambda_ini=1.0,
            lambda_decay=0.9,
            lambda_min=1.0e-4,
            solver="cg",
            cg_tolerance=1.0e-4,
            cg_max_iterations=500,
        ),
        optimizer=OptimizerConfig(kind="sgd", learning_rate=0.05),
        n_iterations=60,
        blocking_bins=10,
        seed=seed,
    )


def xxz_exact_config(seed: int = 11) -> RunConfig:
    """4-site ring optimized with exact enumeration of the ``n_up=2`` sector."""

    return RunConfig(
        machine=MachineConfig(n_visible=4, alpha=2, use_bias=True, dtype="real", init_std=0.01),
        hamiltonian=XxzConfig(J=1.0, delta=1.0, sign_rule=True),
        sampling=SamplingConfig(n_chains=1, n_sweeps=1, n_therm=0, n_up=2, sweeper="swap"),
        sr=SrConfig(
            use_sr=True,
            lambda_ini=1.0,
            lambda_decay=0.9,
            lambda_min=1.0e-4,
            solver="cholesky",
        ),
        optimizer=OptimizerConfig(kind="sgd", learning_rate=0.05),
        n_iterations=200,
        seed=seed,
    )
