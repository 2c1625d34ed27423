from srnqs.physics.basis import (
    full_basis,
    sector_basis,
    to_index,
    to_sigma,
)
from srnqs.physics.exact import ExactGroundState, exact_ground_state, hamiltonian_matrix
from srnqs.physics.hamiltonians import (
    AmplitudeRatios,
    Hamiltonian,
    SquareLattice,
    TransverseIsing,
    Xxz,
    build_chain_bonds,
    local_energy,
)

__all__ = [
    "AmplitudeRatios",
    "ExactGroundState",
    "Hamiltonian",
    "SquareLattice",
    "TransverseIsing",
    "Xxz",
    "build_chain_bonds",
    "exact_ground_state",
    "full_basis",
    "hamiltonian_matrix",
    "local_energy",
    "sector_basis",
    "to_index",
    "to_sigma",
]
