"""RBM neural quantum states trained by Stochastic Reconfiguration."""

from srnqs.config.schemas import RunConfig
from srnqs.nqs.rbm import Rbm
from srnqs.vmc.runner import IterationMetrics, Runner
from srnqs.vmc.training import train_exact, train_sampled

__all__ = [
    "IterationMetrics",
    "Rbm",
    "RunConfig",
    "Runner",
    "train_exact",
    "train_sampled",
]
