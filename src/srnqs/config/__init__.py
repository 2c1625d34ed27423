from srnqs.config.presets import xxz_exact_config, xxz_small_config
from srnqs.config.schemas import (
    MachineConfig,
    OptimizerConfig,
    RunConfig,
    SamplingConfig,
    SrConfig,
    XxzConfig,
)

__all__ = [
    "MachineConfig",
    "OptimizerConfig",
    "RunConfig",
    "SamplingConfig",
    "SrConfig",
    "XxzConfig",
    "xxz_exact_config",
    "xxz_small_config",
]
