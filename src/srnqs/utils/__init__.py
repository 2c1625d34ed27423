from srnqs.utils.checks import (
    require_distinct_sites,
    require_finite,
    require_shape,
    require_site,
    require_spin_values,
)
from srnqs.utils.io import ensure_dir, load_npz, save_json, save_npz
from srnqs.utils.logging import configure_logging, log_event
from srnqs.utils.rng import RngStreams
from srnqs.utils.statistics import MeanWithError, blocking_error_bars, clipped_blocking

__all__ = [
    "MeanWithError",
    "RngStreams",
    "blocking_error_bars",
    "clipped_blocking",
    "configure_logging",
    "ensure_dir",
    "load_npz",
    "log_event",
    "require_distinct_sites",
    "require_finite",
    "require_shape",
    "require_site",
    "require_spin_values",
    "save_json",
    "save_npz",
]
