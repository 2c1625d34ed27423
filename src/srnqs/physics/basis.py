from __future__ import annotations

import numpy as np

from srnqs.types import SpinArray


def to_sigma(n_sites: int, index: int) -> SpinArray:
    """Basis index to spins: bit ``i`` set means ``sigma_i = -1``."""

    if index < 0 or index >= (1 << n_sites):
        raise ValueError(f"basis index {index} out of range for {n_sites} sites")
    bits = (index >> np.arange(n_sites)) & 1
    return (1 - 2 * bits).astype(np.int8)


def to_index(sigma: SpinArray) -> int:
    """Inverse of :func:`to_sigma`."""

    bits = (1 - np.asarray(sigma, dtype=np.int64)) // 2
    return int(np.dot(bits, 1 << np.arange(bits.shape[0], dtype=np.int64)))


def full_basis(n_sites: int) -> list[int]:
    return list(range(1 << n_sites))


def sector_basis(n_sites: int, n_up: int) -> list[int]:
    """Basis indices with exactly ``n_up`` sites equal to +1."""

    if n_up < 0 or n_up > n_sites:
        raise ValueError(f"n_up must be in [0, {n_sites}], received {n_up}")
    n_down = n_sites - n_up
    return [idx for idx in range(1 << n_sites) if bin(idx).count("1") == n_down]
