from srnqs.vmc.runner import CheckpointWriter, IterationMetrics, Runner
from srnqs.vmc.training import (
    TrainingResult,
    build_machine,
    build_runner,
    build_sampler,
    config_basis,
    evaluate_energy,
    reference_energy,
    train_exact,
    train_sampled,
)

__all__ = [
    "CheckpointWriter",
    "IterationMetrics",
    "Runner",
    "TrainingResult",
    "build_machine",
    "build_runner",
    "build_sampler",
    "config_basis",
    "evaluate_energy",
    "reference_energy",
    "train_exact",
    "train_sampled",
]
