"""
Unit tests for polynomial fitting, evaluation and tracking errors.
"""

import math

import numpy as np
import pytest

from mpc_control.errors import FittingError
from mpc_control.path import (
    polyderiv,
    polyeval,
    polyfit,
    reference_line,
    tracking_errors,
)


class TestPolyfit:
    """Test suite for QR-based least-squares fitting"""

    @pytest.fixture
    def xs(self) -> np.ndarray:
        """Six vehicle-frame x positions like the simulator sends"""
        return np.array([-5.0, 8.0, 19.0, 33.0, 47.0, 61.0])

    @pytest.mark.parametrize(
        "coeffs",
        [
            [1.5, 0.0, 0.0, 0.0],
            [0.0, 0.2, 0.0, 0.0],
            [-2.0, 0.05, 0.003, 0.0],
            [0.8, -0.1, 0.002, -3e-5],
        ],
    )
    def test_recovers_exact_polynomial(self, xs: np.ndarray, coeffs: list) -> None:
        """Test that points on a cubic give back its coefficients"""
        ys = np.polynomial.polynomial.polyval(xs, coeffs)

        fitted = polyfit(xs, ys, 3)

        np.testing.assert_allclose(fitted, coeffs, atol=1e-8)

    def test_recovers_lower_degree_polynomial(self, xs: np.ndarray) -> None:
        """Test that a line fitted at degree 3 has vanishing higher terms"""
        ys = 4.0 - 0.5 * xs

        fitted = polyfit(xs, ys, 3)

        np.testing.assert_allclose(fitted, [4.0, -0.5, 0.0, 0.0], atol=1e-9)

    def test_coefficient_count(self, xs: np.ndarray) -> None:
        """Test that the result has degree + 1 coefficients"""
        assert polyfit(xs, xs ** 2, 2).shape == (3,)

    def test_exactly_degree_plus_one_points(self) -> None:
        """Test that the minimum number of points interpolates exactly"""
        xs = [0.0, 1.0, 2.0, 3.0]
        ys = [1.0, 2.0, 5.0, 10.0]

        fitted = polyfit(xs, ys, 3)

        np.testing.assert_allclose(polyeval(fitted, np.array(xs)), ys, atol=1e-10)

    def test_too_few_points(self) -> None:
        """Test that fewer than degree + 1 points raise FittingError"""
        with pytest.raises(FittingError):
            polyfit([0.0, 1.0, 2.0], [0.0, 1.0, 4.0], 3)

    def test_rank_deficient(self) -> None:
        """Test that repeated x positions raise FittingError"""
        with pytest.raises(FittingError):
            polyfit([5.0, 5.0, 5.0, 5.0, 5.0], [0.0, 1.0, 2.0, 3.0, 4.0], 3)

    def test_non_finite_input(self, xs: np.ndarray) -> None:
        """Test that NaN waypoints raise FittingError"""
        ys = np.zeros_like(xs)
        ys[2] = np.nan
        with pytest.raises(FittingError):
            polyfit(xs, ys, 3)

    def test_invalid_degree(self, xs: np.ndarray) -> None:
        """Test that degree 0 is rejected"""
        with pytest.raises(FittingError):
            polyfit(xs, xs, 0)


class TestPolyeval:
    """Test suite for polynomial evaluation helpers"""

    def test_scalar_returns_float(self) -> None:
        """Test that scalar x gives a plain float"""
        value = polyeval([1.0, 2.0, 3.0], 2.0)

        assert isinstance(value, float)
        assert value == pytest.approx(1.0 + 4.0 + 12.0)

    def test_array_input(self) -> None:
        """Test evaluation over an array of x"""
        values = polyeval([0.0, 1.0], np.array([0.0, 1.0, 2.0]))

        np.testing.assert_allclose(values, [0.0, 1.0, 2.0])

    def test_derivative(self) -> None:
        """Test first and second derivatives of a cubic"""
        coeffs = [1.0, 2.0, 3.0, 4.0]

        assert polyderiv(coeffs, 1.0) == pytest.approx(2.0 + 6.0 + 12.0)
        assert polyderiv(coeffs, 1.0, order=2) == pytest.approx(6.0 + 24.0)


class TestTrackingErrors:
    """Test suite for cte / epsi read off the fitted polynomial"""

    @pytest.mark.parametrize("c0", [-3.0, -0.2, 0.0, 0.7, 5.0])
    @pytest.mark.parametrize("c1", [-2.0, -0.1, 0.0, 0.35, 4.0])
    def test_errors_from_low_order_terms(self, c0: float, c1: float) -> None:
        """Test that cte = c0 and epsi = -atan(c1)"""
        cte, epsi = tracking_errors([c0, c1, 0.01, -0.002])

        assert cte == pytest.approx(c0)
        assert epsi == pytest.approx(-math.atan(c1))

    def test_path_curving_left_gives_negative_epsi(self) -> None:
        """Test the heading error sign for a path turning left"""
        _, epsi = tracking_errors([0.0, 0.1, 0.005, 0.0])

        assert epsi < 0.0


class TestReferenceLine:
    """Test suite for display sampling of the path"""

    def test_sample_spacing(self) -> None:
        """Test that samples start at x = 0 with the given spacing"""
        next_x, next_y = reference_line([1.0, 0.5], increment=2.5, num_points=25)

        assert len(next_x) == 25
        assert len(next_y) == 25
        assert next_x[0] == 0.0
        assert next_x[1] == pytest.approx(2.5)
        assert next_y[4] == pytest.approx(1.0 + 0.5 * 10.0)
