from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Literal

import numpy as np
import numpy.typing as npt

from srnqs.nqs.parameterization import (
    FlatParameterLayout,
    build_layout,
    flatten_with_layout,
    unflatten_with_layout,
)
from srnqs.physics.basis import full_basis, to_sigma
from srnqs.types import EPS, ScalarArray, SpinArray
from srnqs.utils.checks import require_shape, require_spin_values

ScalarKind = Literal["real", "complex"]

LOG2: float = float(np.log(2.0))

_DTYPES: dict[str, np.dtype[Any]] = {
    "real": np.dtype(np.float64),
    "complex": np.dtype(np.complex128),
}


def logcosh(x: npt.ArrayLike) -> ScalarArray:
    """Overflow-free ``log(cosh(x))`` for real or complex arguments.

    Uses ``cosh(x) = cosh(-x)`` to evaluate ``s + log1p(exp(-2 s)) - log 2``
    with ``Re(s) >= 0``.
    """

    arr = np.asarray(x)
    s = np.where(np.real(arr) < 0.0, -arr, arr)
    return s + np.log1p(np.exp(-2.0 * s)) - LOG2


class Rbm:
    """Restricted Boltzmann machine amplitude with the hidden layer traced out.

    ``psi(sigma) = exp(a . sigma) * prod_j cosh(theta_j)`` with effective fields
    ``theta = W sigma + b``. ``W`` is ``m x n``; the flat parameter vector is
    ``[W (row-major), a, b]``, or ``[W]`` alone when biases are disabled.

    The scalar type (``"real"`` or ``"complex"``) is fixed at construction.
    """

    def __init__(
        self,
        n_visible: int,
        n_hidden: int,
        use_bias: bool = True,
        dtype: ScalarKind = "real",
    ) -> None:
        if n_visible < 1:
            raise ValueError("n_visible must be >= 1")
        if n_hidden < 1:
            raise ValueError("n_hidden must be >= 1")
        if dtype not in _DTYPES:
            raise ValueError(f"dtype must be one of {sorted(_DTYPES)}, received {dtype!r}")

        self._n = int(n_visible)
        self._m = int(n_hidden)
        self._use_bias = bool(use_bias)
        self._kind: ScalarKind = dtype
        self._dtype = _DTYPES[dtype]

        self._w = np.zeros((self._m, self._n), dtype=self._dtype)
        self._a = np.zeros(self._n, dtype=self._dtype)
        self._b = np.zeros(self._m, dtype=self._dtype)

        shapes: dict[str, tuple[int, ...]] = {"W": (self._m, self._n)}
        if self._use_bias:
            shapes["a"] = (self._n,)
            shapes["b"] = (self._m,)
        self._layout = build_layout(shapes)

    @property
    def n(self) -> int:
        return self._n

    @property
    def m(self) -> int:
        return self._m

    @property
    def use_bias(self) -> bool:
        return self._use_bias

    @property
    def kind(self) -> ScalarKind:
        return self._kind

    @property
    def dtype(self) -> np.dtype[Any]:
        return self._dtype

    @property
    def is_complex(self) -> bool:
        return self._kind == "complex"

    @property
    def dim(self) -> int:
        return self._layout.size

    @property
    def layout(self) -> FlatParameterLayout:
        return self._layout

    @property
    def W(self) -> ScalarArray:
        return _readonly(self._w)

    @property
    def a(self) -> ScalarArray:
        return _readonly(self._a)

    @property
    def b(self) -> ScalarArray:
        return _readonly(self._b)

    def to_scalar(self, value: Any) -> float | complex:
        """Python scalar of the machine type; real machines drop the imaginary part."""

        return complex(value) if self.is_complex else float(np.real(value))

    def describe(self) -> dict[str, Any]:
        return {
            "name": "RBM",
            "use_bias": self._use_bias,
            "n": self._n,
            "m": self._m,
            "dtype": self._kind,
        }

    # -- parameter access -------------------------------------------------

    def _coerce(self, name: str, value: npt.ArrayLike) -> ScalarArray:
        arr = np.asarray(value)
        if not self.is_complex and np.iscomplexobj(arr):
            if np.any(np.abs(np.imag(arr)) > EPS):
                raise ValueError(f"{name} has an imaginary part but the machine is real")
            arr = np.real(arr)
        return np.array(arr, dtype=self._dtype)

    def set_w(self, w: npt.ArrayLike) -> None:
        arr = self._coerce("W", w)
        require_shape("W", arr, (self._m, self._n))
        self._w = arr

    def set_a(self, a: npt.ArrayLike) -> None:
        if not self._use_bias:
            raise ValueError("visible bias is disabled for this machine")
        arr = self._coerce("a", a)
        require_shape("a", arr, (self._n,))
        self._a = arr

    def set_b(self, b: npt.ArrayLike) -> None:
        if not self._use_bias:
            raise ValueError("hidden bias is disabled for this machine")
        arr = self._coerce("b", b)
        require_shape("b", arr, (self._m,))
        self._b = arr

    def _named(self) -> dict[str, ScalarArray]:
        named: dict[str, ScalarArray] = {"W": self._w}
        if self._use_bias:
            named["a"] = self._a
            named["b"] = self._b
        return named

    def get_params(self) -> ScalarArray:
        return flatten_with_layout(self._named(), self._layout, dtype=self._dtype)

    def _unpack(self, name: str, vector: npt.ArrayLike) -> dict[str, ScalarArray]:
        flat = self._coerce(name, vector)
        if flat.ndim != 1 or flat.shape[0] != self.dim:
            raise ValueError(f"{name} must have shape ({self.dim},), received {flat.shape}")
        return unflatten_with_layout(flat, self._layout, dtype=self._dtype)

    def set_params(self, params: npt.ArrayLike) -> None:
        parts = self._unpack("params", params)
        self._w = parts["W"]
        if self._use_bias:
            self._a = parts["a"]
            self._b = parts["b"]

    def update_params(self, delta: npt.ArrayLike) -> None:
        """Add a flat delta (same layout as :meth:`get_params`) in place."""

        parts = self._unpack("delta", delta)
        self._w += parts["W"]
        if self._use_bias:
            self._a += parts["a"]
            self._b += parts["b"]

    def initialize_random(self, rng: np.random.Generator, sigma: float = 1.0e-3) -> None:
        """Gaussian initialization; complex machines draw both parts independently."""

        def draw(shape: tuple[int, ...]) -> ScalarArray:
            values = rng.normal(loc=0.0, scale=sigma, size=shape)
            if self.is_complex:
                values = values + 1j * rng.normal(loc=0.0, scale=sigma, size=shape)
            return np.asarray(values, dtype=self._dtype)

        if self._use_bias:
            self._a = draw((self._n,))
            self._b = draw((self._m,))
        self._w = draw((self._m, self._n))

    def has_nan(self) -> bool:
        return not all(np.all(np.isfinite(arr)) for arr in (self._w, self._a, self._b))

    def copy(self) -> Rbm:
        other = Rbm(self._n, self._m, use_bias=self._use_bias, dtype=self._kind)
        other.set_params(self.get_params())
        return other

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Rbm):
            return NotImplemented
        if (self._n, self._m, self._use_bias, self._kind) != (
            other._n,
            other._m,
            other._use_bias,
            other._kind,
        ):
            return False
        return (
            np.array_equal(self._w, other._w)
            and np.array_equal(self._a, other._a)
            and np.array_equal(self._b, other._b)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"Rbm(n_visible={self._n}, n_hidden={self._m}, use_bias={self._use_bias}, "
            f"dtype={self._kind!r}, dim={self.dim})"
        )

    # -- amplitudes ---------------------------------------------------------

    def _spins(self, sigma: npt.ArrayLike) -> SpinArray:
        spins = np.asarray(sigma)
        require_shape("sigma", spins, (self._n,))
        require_spin_values("sigma", spins)
        return spins.astype(np.int8)

    def calc_theta(self, sigma: npt.ArrayLike) -> ScalarArray:
        """Effective fields ``W sigma + b``."""

        spins = self._spins(sigma)
        return self._w @ spins.astype(self._dtype) + self._b

    def make_data(self, sigma: npt.ArrayLike) -> tuple[SpinArray, ScalarArray]:
        spins = self._spins(sigma).copy()
        return spins, self.calc_theta(spins)

    def log_coeff(self, sigma: SpinArray, theta: ScalarArray) -> float | complex:
        value = self._a @ sigma.astype(self._dtype) + np.sum(logcosh(theta))
        return self.to_scalar(value)

    def coeff(self, sigma: SpinArray, theta: ScalarArray) -> float | complex:
        """Amplitude itself; overflows for large systems, use :meth:`log_coeff` there."""

        value = np.exp(self._a @ sigma.astype(self._dtype)) * np.prod(np.cosh(theta))
        return self.to_scalar(value)

    def log_deriv(self, sigma: SpinArray, theta: ScalarArray) -> ScalarArray:
        """Flat ``d log psi / d p`` in the :meth:`get_params` layout."""

        tanh_theta = np.tanh(theta)
        spins = sigma.astype(self._dtype)
        named: dict[str, ScalarArray] = {"W": np.outer(tanh_theta, spins)}
        if self._use_bias:
            named["a"] = spins
            named["b"] = tanh_theta
        return flatten_with_layout(named, self._layout, dtype=self._dtype)


def _readonly(arr: ScalarArray) -> ScalarArray:
    view = arr.view()
    view.flags.writeable = False
    return view


def get_psi(
    machine: Rbm,
    basis: Sequence[int] | None = None,
    normalize: bool = True,
) -> ScalarArray:
    """Amplitudes over the full basis or a list of basis indices.

    Normalized vectors are computed from log-amplitudes shifted by their
    maximum real part, so they stay finite for larger weights.
    """

    indices = full_basis(machine.n) if basis is None else list(basis)
    logs = np.empty(len(indices), dtype=np.complex128)
    for pos, idx in enumerate(indices):
        sigma, theta = machine.make_data(to_sigma(machine.n, idx))
        logs[pos] = machine.log_coeff(sigma, theta)

    if normalize:
        logs = logs - np.max(np.real(logs))
    psi = np.exp(logs)
    if normalize:
        psi = psi / np.linalg.norm(psi)
    if not machine.is_complex:
        return np.asarray(np.real(psi), dtype=np.float64)
    return psi
