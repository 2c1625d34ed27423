from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from srnqs.types import FloatArray


@dataclass(frozen=True)
class MeanWithError:
    """Mean estimate with standard error from block statistics."""

    mean: float
    stderr: float


def blocking_error_bars(values: FloatArray, n_bins: int) -> MeanWithError:
    """Blocking analysis: standard error of the means of ``n_bins`` blocks.

    Trailing samples that do not fill a block are dropped.
    """

    if values.ndim != 1:
        raise ValueError("values must be rank-1")
    if n_bins < 1:
        raise ValueError("n_bins must be >= 1")
    if values.shape[0] < n_bins:
        raise ValueError("need at least n_bins samples for blocking")

    trimmed = values[: (values.shape[0] // n_bins) * n_bins]
    block_size = trimmed.shape[0] // n_bins

    blocks = trimmed.reshape(n_bins, block_size)
    block_means = np.mean(blocks, axis=1, dtype=np.float64)

    mean = float(np.mean(block_means, dtype=np.float64))
    if n_bins == 1:
        return MeanWithError(mean=mean, stderr=0.0)

    stderr = float(np.std(block_means, ddof=1, dtype=np.float64) / np.sqrt(n_bins))
    return MeanWithError(mean=mean, stderr=stderr)


def clipped_blocking(values: FloatArray, requested_bins: int) -> MeanWithError:
    """:func:`blocking_error_bars` with the bin count clipped to the sample count."""

    n_bins = min(requested_bins, values.shape[0])
    return blocking_error_bars(values=values, n_bins=max(1, n_bins))
