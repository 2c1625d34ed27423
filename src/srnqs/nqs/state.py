from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from srnqs.nqs.rbm import Rbm, logcosh
from srnqs.types import ScalarArray, Sites, SpinArray
from srnqs.utils.checks import require_distinct_sites, require_shape, require_spin_values

SiteSpec = int | Sequence[int]


def _frozen(array: npt.ArrayLike, dtype: npt.DTypeLike) -> np.ndarray:
    out = np.array(array, dtype=dtype, copy=True)
    out.flags.writeable = False
    return out


def _borrowed(array: npt.ArrayLike, dtype: npt.DTypeLike) -> np.ndarray:
    # no copy when the dtype already matches
    view = np.asarray(array, dtype=dtype).view()
    view.flags.writeable = False
    return view


@dataclass(frozen=True, eq=False)
class Snapshot:
    """Immutable ``(sigma, theta)`` pair recorded by a sampler."""

    sigma: SpinArray
    theta: ScalarArray

    def __post_init__(self) -> None:
        object.__setattr__(self, "sigma", _frozen(self.sigma, np.int8))
        object.__setattr__(self, "theta", _frozen(self.theta, np.asarray(self.theta).dtype))


class _RbmStateBase:
    """Ratio queries shared by owning and borrowed RBM states."""

    def __init__(self, machine: Rbm, sigma: SpinArray, theta: ScalarArray) -> None:
        self._machine = machine
        self._sigma = sigma
        self._theta = theta

    @property
    def machine(self) -> Rbm:
        return self._machine

    @property
    def sigma(self) -> SpinArray:
        view = self._sigma.view()
        view.flags.writeable = False
        return view

    @property
    def theta(self) -> ScalarArray:
        view = self._theta.view()
        view.flags.writeable = False
        return view

    def _sites(self, k: SiteSpec, l: int | None) -> Sites:
        if l is not None:
            if not isinstance(k, (int, np.integer)):
                raise TypeError("two-site form takes two integer site indices")
            sites: tuple[int, ...] = (int(k), int(l))
        elif isinstance(k, (int, np.integer)):
            sites = (int(k),)
        else:
            sites = tuple(int(s) for s in k)
        return require_distinct_sites("site", sites, self._machine.n)

    def _flipped_theta(self, sites: Sites) -> ScalarArray:
        idx = list(sites)
        spins = self._sigma[idx].astype(self._machine.dtype)
        return self._theta - 2.0 * (self._machine.W[:, idx] @ spins)

    def log_ratio(self, k: SiteSpec | _RbmStateBase, l: int | None = None) -> float | complex:
        """``log psi(sigma') - log psi(sigma)`` for flipped sites or another state.

        ``k`` may be a site, ``(k, l)`` two sites, a sequence of sites, or a
        state of the same machine. Flips are never committed here.
        """

        if isinstance(k, _RbmStateBase):
            return self._log_ratio_state(k)

        sites = self._sites(k, l)
        if not sites:
            return self._machine.to_scalar(0.0)

        idx = list(sites)
        spins = self._sigma[idx].astype(self._machine.dtype)
        theta_new = self._flipped_theta(sites)
        value = -2.0 * np.dot(self._machine.a[idx], spins) + np.sum(
            logcosh(theta_new) - logcosh(self._theta)
        )
        return self._machine.to_scalar(value)

    def _log_ratio_state(self, other: _RbmStateBase) -> float | complex:
        if other.machine is not self._machine:
            raise ValueError("log_ratio between states requires the same machine")
        dsigma = (other._sigma.astype(np.int64) - self._sigma.astype(np.int64)).astype(
            self._machine.dtype
        )
        value = np.dot(self._machine.a, dsigma) + np.sum(
            logcosh(other._theta) - logcosh(self._theta)
        )
        return self._machine.to_scalar(value)

    def ratio(self, k: SiteSpec | _RbmStateBase, l: int | None = None) -> float | complex:
        return self._machine.to_scalar(np.exp(self.log_ratio(k, l)))

    def log_coeff(self) -> float | complex:
        return self._machine.log_coeff(self._sigma, self._theta)

    def log_deriv(self) -> ScalarArray:
        return self._machine.log_deriv(self._sigma, self._theta)


class RbmStateValue(_RbmStateBase):
    """Owning state: a spin configuration with incrementally updated fields."""

    def __init__(self, machine: Rbm, sigma: npt.ArrayLike) -> None:
        spins, theta = machine.make_data(sigma)
        super().__init__(machine, spins, theta)

    def set_sigma(self, sigma: npt.ArrayLike) -> None:
        """Replace the configuration and recompute theta from scratch."""

        self._sigma, self._theta = self._machine.make_data(sigma)

    def flip(self, k: SiteSpec, l: int | None = None) -> None:
        sites = self._sites(k, l)
        w = self._machine.W
        for site in sites:
            self._theta -= 2.0 * self._sigma[site] * w[:, site]
        for site in sites:
            self._sigma[site] = -self._sigma[site]

    def data(self) -> Snapshot:
        return Snapshot(sigma=self._sigma, theta=self._theta)

    def __repr__(self) -> str:
        return f"RbmStateValue(sigma={self._sigma.tolist()})"


class RbmStateRef(_RbmStateBase):
    """Non-owning read-only view over externally stored ``(sigma, theta)``."""

    def __init__(self, machine: Rbm, sigma: npt.ArrayLike, theta: npt.ArrayLike) -> None:
        spins = np.asarray(sigma)
        fields = np.asarray(theta)
        require_shape("sigma", spins, (machine.n,))
        require_spin_values("sigma", spins)
        require_shape("theta", fields, (machine.m,))
        super().__init__(
            machine,
            _borrowed(spins, np.int8),
            _borrowed(fields, machine.dtype),
        )

    @classmethod
    def from_snapshot(cls, machine: Rbm, snapshot: Snapshot) -> RbmStateRef:
        return cls(machine, snapshot.sigma, snapshot.theta)
