from __future__ import annotations

import numpy as np
import pytest

from srnqs.nqs.rbm import Rbm, get_psi, logcosh
from srnqs.physics.basis import sector_basis, to_sigma


def _machine(dtype: str = "real", use_bias: bool = True, seed: int = 3) -> Rbm:
    machine = Rbm(4, 6, use_bias=use_bias, dtype=dtype)  # type: ignore[arg-type]
    machine.initialize_random(np.random.default_rng(seed), sigma=0.3)
    return machine


def test_logcosh_matches_direct_formula_and_stays_finite() -> None:
    x = np.array([-3.0, -0.2, 0.0, 0.5, 4.0])
    np.testing.assert_allclose(logcosh(x), np.log(np.cosh(x)), rtol=1.0e-12, atol=1.0e-12)

    z = np.array([0.3 + 0.4j, -1.2 + 0.7j, 2.0 - 1.1j])
    np.testing.assert_allclose(logcosh(z), np.log(np.cosh(z)), rtol=1.0e-12, atol=1.0e-12)

    big = logcosh(np.array([1000.0, -1000.0]))
    np.testing.assert_allclose(big, 1000.0 - np.log(2.0), rtol=1.0e-12)


def test_parameter_dimension_with_and_without_bias() -> None:
    assert Rbm(4, 6).dim == 4 * 6 + 4 + 6
    assert Rbm(4, 6, use_bias=False).dim == 24


def test_params_round_trip_leaves_amplitudes_unchanged() -> None:
    for dtype in ("real", "complex"):
        machine = _machine(dtype)
        before = get_psi(machine)
        machine.set_params(machine.get_params())
        np.testing.assert_array_equal(get_psi(machine), before)


def test_flat_layout_is_w_row_major_then_biases() -> None:
    machine = Rbm(2, 3)
    machine.set_w(np.arange(6.0).reshape(3, 2))
    machine.set_a([10.0, 11.0])
    machine.set_b([20.0, 21.0, 22.0])
    np.testing.assert_array_equal(
        machine.get_params(), [0.0, 1.0, 2.0, 3.0, 4.0, 5.0, 10.0, 11.0, 20.0, 21.0, 22.0]
    )


def test_update_params_rejects_wrong_length() -> None:
    machine = _machine()
    with pytest.raises(ValueError):
        machine.update_params(np.zeros(machine.dim + 1))


def test_setters_validate_shapes_and_bias_flag() -> None:
    machine = Rbm(4, 6)
    with pytest.raises(ValueError):
        machine.set_w(np.zeros((4, 6)))
    with pytest.raises(ValueError):
        machine.set_a(np.zeros(6))

    no_bias = Rbm(4, 6, use_bias=False)
    with pytest.raises(ValueError):
        no_bias.set_a(np.zeros(4))
    with pytest.raises(ValueError):
        no_bias.set_b(np.zeros(6))


def test_real_machine_rejects_imaginary_parameters() -> None:
    machine = Rbm(2, 2)
    with pytest.raises(ValueError):
        machine.set_a([1.0 + 0.5j, 0.0])


def test_log_coeff_matches_coeff() -> None:
    for dtype in ("real", "complex"):
        machine = _machine(dtype)
        sigma, theta = machine.make_data(to_sigma(4, 5))
        np.testing.assert_allclose(
            np.exp(machine.log_coeff(sigma, theta)),
            machine.coeff(sigma, theta),
            rtol=1.0e-12,
        )


def test_log_deriv_matches_finite_differences() -> None:
    machine = _machine()
    sigma, theta = machine.make_data(np.array([1, -1, -1, 1], dtype=np.int8))
    analytic = machine.log_deriv(sigma, theta)

    params = machine.get_params()
    eps = 1.0e-6
    numeric = np.zeros_like(params)
    for k in range(params.shape[0]):
        shifted = params.copy()
        shifted[k] += eps
        machine.set_params(shifted)
        up = machine.log_coeff(sigma, machine.calc_theta(sigma))
        shifted[k] -= 2.0 * eps
        machine.set_params(shifted)
        down = machine.log_coeff(sigma, machine.calc_theta(sigma))
        numeric[k] = (up - down) / (2.0 * eps)
    machine.set_params(params)

    np.testing.assert_allclose(analytic, numeric, rtol=1.0e-6, atol=1.0e-8)


def test_get_psi_is_normalized_over_a_sector() -> None:
    machine = _machine("complex")
    basis = sector_basis(4, 2)
    psi = get_psi(machine, basis)
    assert psi.shape == (6,)
    assert np.isclose(np.linalg.norm(psi), 1.0)

    full = get_psi(machine, normalize=False)
    raw = get_psi(machine, basis, normalize=False)
    np.testing.assert_allclose(raw, full[basis], rtol=1.0e-12)


def test_equality_is_conjunctive() -> None:
    machine = _machine()
    other = machine.copy()
    assert machine == other
    assert machine is not other

    other.update_params(np.full(machine.dim, 1.0e-3))
    assert machine != other
    assert Rbm(4, 6) != Rbm(4, 6, use_bias=False)
    assert Rbm(4, 6) != Rbm(4, 6, dtype="complex")


def test_has_nan_detects_non_finite_parameters() -> None:
    machine = _machine()
    assert not machine.has_nan()
    params = machine.get_params()
    params[0] = np.nan
    machine.set_params(params)
    assert machine.has_nan()


def test_weights_are_read_only_views() -> None:
    machine = _machine()
    with pytest.raises(ValueError):
        machine.W[0, 0] = 1.0
