from srnqs.sampling.sampler import (
    ChainState,
    MultiChainSampler,
    Randomizer,
    Sampler,
    SampleSource,
    random_sigma,
)
from srnqs.sampling.sweepers import (
    FlipListSweeper,
    LocalSweeper,
    Sweeper,
    SwapSweeper,
    metropolis_accept,
)
from srnqs.sampling.thrml_backend import ThrmlGibbsSampler

__all__ = [
    "ChainState",
    "FlipListSweeper",
    "LocalSweeper",
    "MultiChainSampler",
    "Randomizer",
    "SampleSource",
    "Sampler",
    "SwapSweeper",
    "Sweeper",
    "ThrmlGibbsSampler",
    "metropolis_accept",
    "random_sigma",
]
