import numpy as np
import pytest

from mmaopt.core.asymptotes import AsymptoteManager
from mmaopt.core.config import MMAConfig


def _manager(n=1, m=0, **overrides):
    return AsymptoteManager(n, m, MMAConfig(**overrides))


def test_initialize_uses_asyinit_fraction_of_the_box():
    mgr = _manager(n=2, asyinit=0.5)
    x = np.array([1.0, 3.0])
    mgr.initialize(x, np.array([0.0, 2.0]), np.array([2.0, 6.0]))
    assert np.allclose(mgr.low, [0.0, 1.0])
    assert np.allclose(mgr.upp, [2.0, 5.0])


def test_monotone_iterates_expand_the_asymptotes():
    mgr = _manager()
    xmin, xmax = np.array([0.0]), np.array([10.0])
    xo2, xo1, x = np.array([4.0]), np.array([5.0]), np.array([6.0])
    mgr.low[:] = 3.0
    mgr.upp[:] = 7.0
    gap_low, gap_upp = xo1 - mgr.low, mgr.upp - xo1

    mgr.adapt(x, xo1, xo2, xmin, xmax)

    assert np.allclose(x - mgr.low, 1.2 * gap_low)
    assert np.allclose(mgr.upp - x, 1.2 * gap_upp)


def test_oscillating_iterates_contract_the_asymptotes():
    mgr = _manager()
    xmin, xmax = np.array([0.0]), np.array([10.0])
    xo2, xo1, x = np.array([4.0]), np.array([6.0]), np.array([5.0])
    mgr.low[:] = 4.0
    mgr.upp[:] = 8.0

    mgr.adapt(x, xo1, xo2, xmin, xmax)

    assert np.allclose(x - mgr.low, 0.7 * 2.0)
    assert np.allclose(mgr.upp - x, 0.7 * 2.0)


def test_stalled_variable_keeps_its_gap():
    mgr = _manager(n=2)
    xmin, xmax = np.zeros(2), np.full(2, 10.0)
    xo2 = np.array([5.0, 1.0])
    xo1 = np.array([5.0, 2.0])
    x = np.array([6.0, 3.0])
    mgr.low[:] = [3.0, 1.0]
    mgr.upp[:] = [7.0, 3.0]

    mgr.adapt(x, xo1, xo2, xmin, xmax)

    # first variable: no movement two steps ago, factor 1
    assert mgr.low[0] == pytest.approx(6.0 - 2.0)
    # second variable: monotone, factor asyincr
    assert mgr.low[1] == pytest.approx(3.0 - 1.2 * 1.0)


def test_adapted_asymptotes_are_clamped_to_the_box_span():
    mgr = _manager(n=2)
    xmin, xmax = np.zeros(2), np.ones(2)
    xo2 = np.array([0.2, 0.2])
    xo1 = np.array([0.3, 0.3])
    x = np.array([0.4, 0.4])
    mgr.low[:] = [0.2999, -50.0]
    mgr.upp[:] = [0.3001, 50.0]

    mgr.adapt(x, xo1, xo2, xmin, xmax)

    assert mgr.low[0] == pytest.approx(0.4 - 0.01)
    assert mgr.upp[0] == pytest.approx(0.4 + 0.01)
    assert mgr.low[1] == pytest.approx(0.4 - 10.0)
    assert mgr.upp[1] == pytest.approx(0.4 + 10.0)
    assert np.all(mgr.low < x) and np.all(x < mgr.upp)


def test_move_limits_stay_inside_bounds_and_asymptotes():
    mgr = _manager(n=2)
    x = np.array([1.0, 1.0])
    xmin, xmax = np.zeros(2), np.full(2, 2.0)
    mgr.initialize(x, xmin, xmax)

    alfa, beta = mgr.move_limits(x, xmin, xmax)

    assert np.allclose(alfa, 0.1)
    assert np.allclose(beta, 1.9)
    assert np.all(xmin <= alfa) and np.all(beta <= xmax)
    assert np.all(mgr.low < alfa) and np.all(beta < mgr.upp)


def test_move_limit_binds_before_the_asymptotes():
    mgr = _manager(n=1, move=0.1)
    x = np.array([5.0])
    xmin, xmax = np.array([0.0]), np.array([10.0])
    mgr.initialize(x, xmin, xmax)

    alfa, beta = mgr.move_limits(x, xmin, xmax)

    assert alfa[0] == pytest.approx(4.0)
    assert beta[0] == pytest.approx(6.0)


def test_approximation_splits_gradients_by_sign():
    cfg = MMAConfig()
    mgr = AsymptoteManager(2, 1, cfg)
    x = np.array([1.0, 1.0])
    xmin, xmax = np.zeros(2), np.full(2, 2.0)
    mgr.initialize(x, xmin, xmax)
    dfdx = np.array([2.0, -3.0])
    gx = np.array([-1.0])
    dgdx = np.array([[1.0, 0.0]])

    ap = mgr.approximate(x, dfdx, gx, dgdx, xmin, xmax)

    reg = cfg.raa0 / 2.0  # raa0 / (xmax - xmin)
    # ux = xl = 1 at the first iteration
    assert ap.p0[0] == pytest.approx(2.0 + 0.002 + reg)
    assert ap.q0[0] == pytest.approx(0.002 + reg)
    assert ap.p0[1] == pytest.approx(0.003 + reg)
    assert ap.q0[1] == pytest.approx(3.0 + 0.003 + reg)
    # zero gradient keeps strictly positive coefficients
    assert ap.P[0, 1] == pytest.approx(reg) and ap.Q[0, 1] == pytest.approx(reg)
    assert np.all(ap.P > 0) and np.all(ap.Q > 0)
    expected_b = np.sum(ap.P[0] / (ap.upp - x) + ap.Q[0] / (x - ap.low)) - gx[0]
    assert ap.b[0] == pytest.approx(expected_b)


def test_approximation_without_constraints_has_empty_rows():
    mgr = _manager(n=3, m=0)
    x = np.full(3, 0.5)
    xmin, xmax = np.zeros(3), np.ones(3)
    mgr.initialize(x, xmin, xmax)

    ap = mgr.approximate(x, np.zeros(3), np.zeros(0), np.zeros((0, 3)), xmin, xmax)

    assert ap.P.shape == (0, 3) and ap.Q.shape == (0, 3)
    assert ap.b.shape == (0,)
    assert np.allclose(ap.p0, ap.q0)
