from __future__ import annotations

import numpy as np
import pytest

from srnqs.nqs.rbm import Rbm
from srnqs.nqs.state import RbmStateRef, RbmStateValue


def _machine(dtype: str = "real", seed: int = 11) -> Rbm:
    machine = Rbm(6, 9, dtype=dtype)  # type: ignore[arg-type]
    machine.initialize_random(np.random.default_rng(seed), sigma=0.4)
    return machine


def _sigma(seed: int = 5, n: int = 6) -> np.ndarray:
    return np.random.default_rng(seed).choice([-1, 1], size=n).astype(np.int8)


def test_incremental_theta_matches_recomputation_after_flips() -> None:
    for dtype in ("real", "complex"):
        machine = _machine(dtype)
        state = RbmStateValue(machine, _sigma())
        rng = np.random.default_rng(0)
        for _ in range(40):
            k, l = (int(s) for s in rng.choice(6, size=2, replace=False))
            if rng.random() < 0.5:
                state.flip(k)
            else:
                state.flip(k, l)
        np.testing.assert_allclose(
            state.theta, machine.calc_theta(state.sigma), rtol=1.0e-12, atol=1.0e-12
        )


def test_single_flip_ratio_matches_amplitude_quotient() -> None:
    for dtype in ("real", "complex"):
        machine = _machine(dtype)
        sigma = _sigma()
        state = RbmStateValue(machine, sigma)
        base = machine.coeff(*machine.make_data(sigma))
        for k in range(6):
            flipped = sigma.copy()
            flipped[k] = -flipped[k]
            expected = machine.coeff(*machine.make_data(flipped)) / base
            np.testing.assert_allclose(state.ratio(k), expected, rtol=1.0e-10)


def test_pair_ratio_equals_sequential_single_ratios() -> None:
    machine = _machine("complex")
    state = RbmStateValue(machine, _sigma())
    pair = state.log_ratio(1, 4)
    first = state.log_ratio(1)
    state.flip(1)
    second = state.log_ratio(4)
    np.testing.assert_allclose(pair, first + second, rtol=1.0e-12, atol=1.0e-12)


def test_tuple_ratio_matches_state_to_state_ratio() -> None:
    machine = _machine()
    sigma = _sigma()
    state = RbmStateValue(machine, sigma)
    target = sigma.copy()
    target[[0, 2, 5]] *= -1
    other = RbmStateValue(machine, target)

    np.testing.assert_allclose(state.log_ratio((0, 2, 5)), state.log_ratio(other), rtol=1.0e-12)


def test_log_ratio_does_not_mutate_state() -> None:
    machine = _machine()
    state = RbmStateValue(machine, _sigma())
    sigma_before = np.array(state.sigma)
    theta_before = np.array(state.theta)
    state.log_ratio((1, 3))
    np.testing.assert_array_equal(state.sigma, sigma_before)
    np.testing.assert_array_equal(state.theta, theta_before)


def test_invalid_sites_are_rejected() -> None:
    state = RbmStateValue(_machine(), _sigma())
    with pytest.raises(IndexError):
        state.log_ratio(6)
    with pytest.raises(IndexError):
        state.flip(-1)
    with pytest.raises(ValueError):
        state.flip(2, 2)
    with pytest.raises(ValueError):
        state.log_ratio((1, 3, 1))


def test_state_ratio_requires_same_machine() -> None:
    machine = _machine()
    state = RbmStateValue(machine, _sigma())
    other = RbmStateValue(machine.copy(), _sigma())
    with pytest.raises(ValueError):
        state.log_ratio(other)


def test_set_sigma_recomputes_theta() -> None:
    machine = _machine()
    state = RbmStateValue(machine, _sigma(1))
    new_sigma = _sigma(2)
    state.set_sigma(new_sigma)
    np.testing.assert_array_equal(state.sigma, new_sigma)
    np.testing.assert_allclose(state.theta, machine.calc_theta(new_sigma))


def test_snapshot_is_immutable_and_detached() -> None:
    machine = _machine()
    state = RbmStateValue(machine, _sigma())
    snap = state.data()
    sigma_before = np.array(snap.sigma)
    state.flip(0)
    np.testing.assert_array_equal(snap.sigma, sigma_before)
    with pytest.raises(ValueError):
        snap.sigma[0] = 1
    with pytest.raises(ValueError):
        snap.theta[0] = 0.0


def test_state_ref_matches_value_and_cannot_flip() -> None:
    machine = _machine("complex")
    value = RbmStateValue(machine, _sigma())
    ref = RbmStateRef.from_snapshot(machine, value.data())
    for k in range(6):
        np.testing.assert_allclose(ref.log_ratio(k), value.log_ratio(k), rtol=1.0e-12)
    assert not hasattr(ref, "flip")
    with pytest.raises(ValueError):
        ref.theta[0] = 0.0


def test_state_ref_borrows_snapshot_arrays() -> None:
    machine = _machine()
    snap = RbmStateValue(machine, _sigma()).data()
    ref = RbmStateRef.from_snapshot(machine, snap)
    assert np.shares_memory(ref.sigma, snap.sigma)
    assert np.shares_memory(ref.theta, snap.theta)

    sigma = np.array(_sigma(), dtype=np.int8)
    borrowed = RbmStateRef(machine, sigma, machine.calc_theta(sigma))
    assert np.shares_memory(borrowed.sigma, sigma)
    with pytest.raises(ValueError):
        borrowed.sigma[0] = 1
    assert sigma.flags.writeable


def test_exposed_arrays_are_read_only() -> None:
    state = RbmStateValue(_machine(), _sigma())
    with pytest.raises(ValueError):
        state.sigma[0] = 1
    with pytest.raises(ValueError):
        state.theta[0] = 0.0
