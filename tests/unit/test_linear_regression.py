import numpy as np
import pytest

from netstep.linear_regression import (
    DataPoint,
    compute_huber,
    compute_loss,
    compute_loss_landscape,
    compute_mae,
    compute_mse,
    compute_r2,
    gradient_descent_step,
    normal_equation,
)


def _points(pairs):
    return [DataPoint(x, y) for x, y in pairs]


def test_normal_equation_recovers_exact_line():
    m, b = normal_equation(_points([(0, 2), (1, 3.5), (2, 5)]))
    assert m == pytest.approx(1.5)
    assert b == pytest.approx(2.0)


def test_normal_equation_degenerate_inputs():
    assert normal_equation([]) == (0.0, 0.0)
    assert normal_equation(_points([(1, 4)])) == (0.0, 0.0)
    assert normal_equation(_points([(2, 1), (2, 3), (2, 5)])) == (0.0, pytest.approx(3.0))


def test_losses_on_known_residuals():
    points = _points([(0, 0), (1, 0), (2, 0)])
    # residuals with m=1, b=0 are 0, 1, 2
    assert compute_mse(points, 1.0, 0.0) == pytest.approx(5.0 / 3.0)
    assert compute_mae(points, 1.0, 0.0) == pytest.approx(1.0)
    assert compute_huber(points, 1.0, 0.0) == pytest.approx((0.0 + 0.5 + 1.5) / 3.0)
    assert compute_loss(points, 1.0, 0.0, "mae") == compute_mae(points, 1.0, 0.0)
    assert compute_mse([], 1.0, 0.0) == 0.0
    with pytest.raises(KeyError):
        compute_loss(points, 1.0, 0.0, "logcosh")


def test_r2_edge_cases():
    line = _points([(0, 1), (1, 3), (2, 5)])
    assert compute_r2(line, 2.0, 1.0) == pytest.approx(1.0)
    assert compute_r2(line, 0.0, 3.0) == pytest.approx(0.0)
    assert compute_r2(_points([(0, 2), (1, 2)]), 0.0, 0.0) == 1.0
    assert compute_r2(_points([(0, 2)]), 0.0, 0.0) == 0.0


def test_gradient_descent_step_mse():
    points = _points([(1, 2), (2, 4)])
    step = gradient_descent_step(points, 0.0, 0.0, 0.1)
    # errors -2, -4: dm = mean(2e * x) = -10, db = mean(2e) = -6
    assert step.dm == pytest.approx(-10.0)
    assert step.db == pytest.approx(-6.0)
    assert step.m == pytest.approx(1.0)
    assert step.b == pytest.approx(0.6)


def test_gradient_descent_converges_towards_closed_form():
    points = _points([(x, 0.5 * x - 1.0) for x in np.linspace(-2, 2, 9)])
    m, b = 0.0, 0.0
    for _ in range(500):
        step = gradient_descent_step(points, m, b, 0.1)
        m, b = step.m, step.b
    assert m == pytest.approx(0.5, abs=1e-4)
    assert b == pytest.approx(-1.0, abs=1e-4)


def test_gradient_step_for_mae_and_huber_uses_sign():
    points = _points([(1, 10)])
    mae = gradient_descent_step(points, 0.0, 0.0, 1.0, "mae")
    huber = gradient_descent_step(points, 0.0, 0.0, 1.0, "huber", delta=2.0)
    assert (mae.dm, mae.db) == (-1.0, -1.0)
    assert (huber.dm, huber.db) == (-2.0, -2.0)
    assert gradient_descent_step([], 1.0, 2.0, 0.1).m == 1.0


def test_loss_landscape_grid_layout():
    points = _points([(0, 1), (1, 3)])
    grid = compute_loss_landscape(points, (0.0, 4.0), (-1.0, 1.0), resolution=5)
    assert grid["loss"].shape == (5, 5)
    assert np.allclose(grid["m"][:, 0], np.linspace(0.0, 4.0, 5))
    assert np.allclose(grid["b"][0], np.linspace(-1.0, 1.0, 5))
    # (m=2, b=1) fits exactly
    assert grid["loss"][2, 4] == pytest.approx(0.0)
    with pytest.raises(ValueError):
        compute_loss_landscape(points, (0.0, 1.0), (0.0, 1.0), resolution=1)
