from srnqs.nqs.parameterization import (
    FlatParameterLayout,
    ParameterSlice,
    build_layout,
    flatten_with_layout,
    unflatten_with_layout,
)
from srnqs.nqs.rbm import Rbm, get_psi, logcosh
from srnqs.nqs.serialization import load_machine, save_machine
from srnqs.nqs.state import RbmStateRef, RbmStateValue, Snapshot

__all__ = [
    "FlatParameterLayout",
    "ParameterSlice",
    "Rbm",
    "RbmStateRef",
    "RbmStateValue",
    "Snapshot",
    "build_layout",
    "flatten_with_layout",
    "get_psi",
    "load_machine",
    "logcosh",
    "save_machine",
    "unflatten_with_layout",
]
