from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from srnqs.physics.basis import full_basis, to_index, to_sigma
from srnqs.physics.hamiltonians import Hamiltonian
from srnqs.types import FloatArray


@dataclass(frozen=True)
class ExactGroundState:
    """Lowest eigenpair of a Hamiltonian restricted to a basis."""

    energy: float
    vector: FloatArray
    basis: tuple[int, ...]


def hamiltonian_matrix(hamiltonian: Hamiltonian, basis: Sequence[int] | None = None) -> FloatArray:
    """Dense ``<i|H|j>`` over ``basis`` (full Hilbert space by default).

    Only meant for validating small systems. The basis must be closed under
    the Hamiltonian.
    """

    n_sites = hamiltonian.n_sites
    indices = full_basis(n_sites) if basis is None else list(basis)
    position = {idx: pos for pos, idx in enumerate(indices)}

    mat = np.zeros((len(indices), len(indices)), dtype=np.float64)
    for col, idx in enumerate(indices):
        spins = to_sigma(n_sites, idx)
        mat[col, col] += hamiltonian.diagonal(spins)
        for sites, element in hamiltonian.off_diagonal(spins):
            flipped = spins.copy()
            flipped[list(sites)] *= -1
            target = to_index(flipped)
            if target not in position:
                raise ValueError(
                    f"basis is not closed under the Hamiltonian: {idx} connects to {target}"
                )
            mat[position[target], col] += element
    return mat


def exact_ground_state(
    hamiltonian: Hamiltonian,
    basis: Sequence[int] | None = None,
) -> ExactGroundState:
    indices = full_basis(hamiltonian.n_sites) if basis is None else list(basis)
    eigvals, eigvecs = np.linalg.eigh(hamiltonian_matrix(hamiltonian, indices))
    vector = np.asarray(eigvecs[:, 0], dtype=np.float64)
    # fix the global sign so the largest component is positive
    if vector[np.argmax(np.abs(vector))] < 0.0:
        vector = -vector
    return ExactGroundState(energy=float(eigvals[0]), vector=vector, basis=tuple(indices))
