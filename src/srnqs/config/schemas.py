from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MachineConfig(BaseModel):
    """RBM shape and initialization; ``n_hidden`` defaults to ``alpha * n_visible``."""

    model_config = ConfigDict(extra="forbid")

    n_visible: int = Field(ge=2)
    alpha: int = Field(default=2, ge=1)
    n_hidden: int | None = Field(default=None, ge=1)
    use_bias: bool = True
    dtype: Literal["real", "complex"] = "real"
    init_std: float = Field(default=0.01, gt=0.0)

    @property
    def hidden_units(self) -> int:
        return self.n_hidden if self.n_hidden is not None else self.alpha * self.n_visible


class XxzConfig(BaseModel):
    """XXZ chain couplings in Pauli units."""

    model_config = ConfigDict(extra="forbid")

    J: float = 1.0
    delta: float = 1.0
    sign_rule: bool = True
    periodic: bool = True


class SamplingConfig(BaseModel):
    """Markov-chain schedule; ``n_sweeps`` snapshots are recorded per chain."""

    model_config = ConfigDict(extra="forbid")

    n_chains: int = Field(default=4, ge=1)
    n_sweeps: int = Field(ge=1)
    n_therm: int = Field(ge=0)
    n_up: int | None = Field(default=None, ge=0)
    sweeper: Literal["local", "swap", "gibbs"] = "local"
    n_workers: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _check_sweeper(self) -> SamplingConfig:
        if self.sweeper == "swap" and self.n_up is None:
            raise ValueError("swap sweeps conserve magnetization; set n_up")
        if self.sweeper == "local" and self.n_up is not None:
            raise ValueError("local sweeps leave the n_up sector; use the swap sweeper")
        if self.sweeper == "gibbs" and self.n_up is not None:
            raise ValueError("block-Gibbs sampling cannot fix n_up")
        return self


class SrConfig(BaseModel):
    """Stochastic Reconfiguration: diagonal-shift schedule and linear solver."""

    model_config = ConfigDict(extra="forbid")

    use_sr: bool = True
    lambda_ini: float = Field(default=1.0, ge=0.0)
    lambda_decay: float = Field(default=0.9, gt=0.0, le=1.0)
    lambda_min: float = Field(default=1.0e-4, ge=0.0)
    solver: Literal["cg", "cholesky"] = "cg"
    cg_tolerance: float = Field(default=1.0e-4, gt=0.0)
    cg_max_iterations: int = Field(default=500, ge=1)
    cg_jacobi: bool = False

    @model_validator(mode="after")
    def _check_lambda_bounds(self) -> SrConfig:
        if self.lambda_min > self.lambda_ini:
            raise ValueError("lambda_min must be <= lambda_ini")
        return self


class OptimizerConfig(BaseModel):
    """Step policy applied to the SR solution."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["sgd", "adam"] = "sgd"
    learning_rate: float = Field(default=0.05, gt=0.0)
    momentum: float = Field(default=0.0, ge=0.0, lt=1.0)
    beta1: float = Field(default=0.9, ge=0.0, lt=1.0)
    beta2: float = Field(default=0.999, ge=0.0, lt=1.0)
    eps: float = Field(default=1.0e-8, gt=0.0)


class RunConfig(BaseModel):
    """Complete XXZ ground-state optimization run."""

    model_config = ConfigDict(extra="forbid")

    machine: MachineConfig
    hamiltonian: XxzConfig
    sampling: SamplingConfig
    sr: SrConfig
    optimizer: OptimizerConfig
    n_iterations: int = Field(ge=1)
    save_every: int = Field(default=0, ge=0)
    blocking_bins: int = Field(default=10, ge=1)
    seed: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_sector(self) -> RunConfig:
        n_up = self.sampling.n_up
        if n_up is not None and n_up > self.machine.n_visible:
            raise ValueError("sampling.n_up cannot exceed machine.n_visible")
        if self.sampling.sweeper == "gibbs" and self.machine.dtype == "complex":
            raise ValueError("block-Gibbs sampling requires a real machine")
        return self
