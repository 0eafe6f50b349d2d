"""Reference path fitting and evaluation.

The simulator sends a handful of sparse waypoints each cycle. After they are
moved into the vehicle frame, a low-degree polynomial y = f(x) is fitted to
them; the controller then reads its tracking errors straight off the
coefficients and the optimizer evaluates f along the horizon.

Coefficients are stored low-to-high: f(x) = c[0] + c[1]*x + c[2]*x^2 + ...
"""

import math
from typing import Union

import numpy as np
import numpy.typing as npt
from numpy.polynomial import polynomial as P
from scipy.linalg import solve_triangular

from .config import REFERENCE_LINE_INCREMENT, REFERENCE_LINE_POINTS
from .errors import FittingError

ArrayLike = Union[float, npt.ArrayLike]


def polyfit(xs, ys, degree: int) -> npt.NDArray[np.float64]:
    """Least-squares polynomial fit via QR decomposition.

    Builds the Vandermonde design matrix A (columns 1, x, x^2, ...), factors
    A = QR and solves R c = Q^T y. This avoids forming A^T A, whose condition
    number is the square of A's and breaks down for nearly collinear
    waypoints.

    Args:
        xs: Waypoint x coordinates (vehicle frame).
        ys: Waypoint y coordinates (vehicle frame).
        degree: Polynomial degree (>= 1).

    Returns:
        Coefficient array of length degree + 1, lowest order first.

    Raises:
        FittingError: If there are fewer than degree + 1 points, the input is
            not finite, or the design matrix is rank deficient.
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)

    if degree < 1:
        raise FittingError(f"Fit degree must be at least 1, got {degree}")
    if x.shape != y.shape or x.ndim != 1:
        raise FittingError(f"Mismatched waypoint arrays: {x.shape} vs {y.shape}")
    if x.size < degree + 1:
        raise FittingError(
            f"Degree {degree} fit needs at least {degree + 1} points, got {x.size}"
        )
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        raise FittingError("Waypoints contain non-finite values")

    A = np.vander(x, degree + 1, increasing=True)
    Q, R = np.linalg.qr(A)

    # Rank check on the triangular factor, tolerance scaled by the largest entry of R
    diag = np.abs(np.diag(R))
    tol = np.abs(R).max(initial=0.0) * max(A.shape) * np.finfo(float).eps
    if diag.min() <= tol:
        raise FittingError("Waypoints do not determine a unique polynomial (rank deficient)")

    coeffs = solve_triangular(R, Q.T @ y, lower=False)
    if not np.all(np.isfinite(coeffs)):
        raise FittingError("Polynomial fit produced non-finite coefficients")
    return coeffs


def polyeval(coeffs, x: ArrayLike):
    """Evaluate sum(c_j * x^j) at a scalar or array of x values."""
    result = P.polyval(x, np.asarray(coeffs, dtype=float))
    if np.ndim(result) == 0:
        return float(result)
    return result


def polyderiv(coeffs, x: ArrayLike, order: int = 1):
    """Evaluate the order-th derivative of the polynomial at x."""
    return polyeval(P.polyder(np.asarray(coeffs, dtype=float), order), x)


def tracking_errors(coeffs) -> tuple[float, float]:
    """Cross-track and heading error of a vehicle at the vehicle-frame origin.

    The car sits at (0, 0) facing +x, so:
        cte  = f(0)         (lateral offset of the path, equals c[0])
        epsi = -atan(f'(0)) (vehicle heading 0 minus path tangent angle)

    Args:
        coeffs: Path polynomial coefficients, lowest order first.

    Returns:
        Tuple of (cte, epsi).
    """
    c = np.asarray(coeffs, dtype=float)
    cte = polyeval(c, 0.0)
    epsi = -math.atan(c[1]) if c.size > 1 else 0.0
    return cte, epsi


def reference_line(
    coeffs,
    increment: float = REFERENCE_LINE_INCREMENT,
    num_points: int = REFERENCE_LINE_POINTS,
) -> tuple[list[float], list[float]]:
    """Sample the fitted path at evenly spaced x for display.

    Args:
        coeffs: Path polynomial coefficients.
        increment: Spacing between samples along x (meters).
        num_points: Number of samples, starting at x = 0.

    Returns:
        Tuple of (next_x, next_y) lists in the vehicle frame.
    """
    xs = increment * np.arange(num_points, dtype=float)
    ys = np.atleast_1d(polyeval(coeffs, xs))
    return xs.tolist(), ys.tolist()
