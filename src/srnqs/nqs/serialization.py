from __future__ import annotations

from pathlib import Path

import numpy as np

from srnqs.nqs.rbm import Rbm
from srnqs.utils.io import load_npz, save_npz


def save_machine(path: Path, machine: Rbm) -> None:
    """Write ``use_bias, n, m, W[, a, b]`` to an ``.npz`` checkpoint."""

    arrays: dict[str, np.ndarray] = {
        "use_bias": np.asarray(machine.use_bias),
        "n": np.asarray(machine.n, dtype=np.int64),
        "m": np.asarray(machine.m, dtype=np.int64),
        "W": np.array(machine.W),
    }
    if machine.use_bias:
        arrays["a"] = np.array(machine.a)
        arrays["b"] = np.array(machine.b)
    save_npz(path, **arrays)


def load_machine(path: Path) -> Rbm:
    """Rebuild a machine from :func:`save_machine` output; dtype follows ``W``."""

    data = load_npz(path)
    missing = {"use_bias", "n", "m", "W"} - set(data)
    if missing:
        raise ValueError(f"checkpoint {path} is missing keys {sorted(missing)}")

    use_bias = bool(data["use_bias"])
    kind = "complex" if np.iscomplexobj(data["W"]) else "real"
    machine = Rbm(int(data["n"]), int(data["m"]), use_bias=use_bias, dtype=kind)
    machine.set_w(data["W"])
    if use_bias:
        if "a" not in data or "b" not in data:
            raise ValueError(f"checkpoint {path} has use_bias set but no biases")
        machine.set_a(data["a"])
        machine.set_b(data["b"])
    return machine
