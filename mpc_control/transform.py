"""World-to-vehicle frame conversion for reference waypoints.

In the vehicle frame the car sits at the origin facing +x, which makes the
cross-track and heading errors direct reads of the fitted polynomial.
"""

import numpy as np
import numpy.typing as npt

from .errors import InputError


def _as_points(ptsx, ptsy) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    xs = np.asarray(ptsx, dtype=float)
    ys = np.asarray(ptsy, dtype=float)
    if xs.ndim != 1 or ys.ndim != 1:
        raise InputError("Waypoint coordinates must be flat sequences")
    if xs.size == 0:
        raise InputError("Waypoint list is empty")
    if xs.size != ys.size:
        raise InputError(f"Waypoint length mismatch: {xs.size} x values, {ys.size} y values")
    return xs, ys


def to_vehicle_frame(
    px: float, py: float, psi: float, ptsx, ptsy
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Convert world-frame waypoints into the vehicle frame.

    Each point is translated by (-px, -py) and then rotated by -psi:
        x_v =  dx * cos(psi) + dy * sin(psi)
        y_v = -dx * sin(psi) + dy * cos(psi)

    Args:
        px: Vehicle x position in world frame.
        py: Vehicle y position in world frame.
        psi: Vehicle heading in world frame (radians).
        ptsx: World-frame waypoint x coordinates.
        ptsy: World-frame waypoint y coordinates.

    Returns:
        Tuple of new (x, y) arrays, same length and order as the input.

    Raises:
        InputError: If the waypoint list is empty or the lengths differ.
    """
    xs, ys = _as_points(ptsx, ptsy)
    dx = xs - px
    dy = ys - py
    cos_psi = np.cos(psi)
    sin_psi = np.sin(psi)
    return dx * cos_psi + dy * sin_psi, -dx * sin_psi + dy * cos_psi


def to_world_frame(
    px: float, py: float, psi: float, xs, ys
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Inverse of to_vehicle_frame: rotate by +psi, then translate by (px, py)."""
    xv, yv = _as_points(xs, ys)
    cos_psi = np.cos(psi)
    sin_psi = np.sin(psi)
    return px + xv * cos_psi - yv * sin_psi, py + xv * sin_psi + yv * cos_psi
