"""
Kinematic bicycle model of the vehicle.

This module provides the state container shared by the pipeline, the
latency-compensating state predictor, and the single-step motion update
used by the trajectory optimizer.
"""

import math
from typing import NamedTuple

import numpy as np

from .config import LF
from .path import polyderiv, polyeval


class VehicleState(NamedTuple):
    """Vehicle state in the vehicle frame at one reference time.

    Attributes:
        x: Longitudinal position (m).
        y: Lateral position (m).
        psi: Heading relative to the frame's +x axis (rad).
        v: Speed.
        cte: Cross-track error (path y minus vehicle y).
        epsi: Heading error (vehicle heading minus path tangent angle).
    """

    x: float
    y: float
    psi: float
    v: float
    cte: float
    epsi: float

    def as_array(self) -> np.ndarray:
        return np.array(self, dtype=float)


def predict_state(
    measured: VehicleState,
    steering: float,
    throttle: float,
    latency: float,
    lf: float = LF,
) -> VehicleState:
    """
    Propagate the measured state forward by the actuation delay.

    The command computed this cycle only takes effect after `latency`
    seconds, so the optimizer must plan from where the car will be then.
    At the telemetry instant the car is at the vehicle-frame origin with
    zero heading, which reduces the bicycle model to:

        x'    = v * L
        y'    = 0
        psi'  = (v / Lf) * (-delta) * L
        v'    = v + a * L
        cte'  = cte + v * sin(epsi) * L
        epsi' = epsi - (-delta) * (v / Lf) * L

    where delta is the last applied steering in the actuator's convention
    (positive turns clockwise), hence the negation.

    Args:
        measured: State at telemetry receipt (x, y, psi are ignored and
            taken as zero).
        steering: Last applied steering command as reported by telemetry
            (actuator sign, positive turns clockwise), used without scaling.
        throttle: Last applied throttle.
        latency: Actuation delay L (seconds).
        lf: Front axle to center of gravity distance (m).

    Returns:
        Predicted VehicleState, still in the original vehicle frame.
    """
    v = measured.v
    cte = measured.cte
    epsi = measured.epsi
    delta = -steering

    # No delay to compensate
    if latency == 0.0:
        return measured

    return VehicleState(
        x=v * latency,
        y=0.0,
        psi=(v / lf) * delta * latency,
        v=v + throttle * latency,
        cte=cte + v * math.sin(epsi) * latency,
        epsi=epsi - delta * (v / lf) * latency,
    )


def bicycle_step(
    state: VehicleState, delta: float, a: float, dt: float, coeffs, lf: float = LF
) -> VehicleState:
    """
    Advance the state one step with the kinematic bicycle model.

    Errors are re-derived from the reference polynomial f at the current x:

        x1    = x0 + v0 * cos(psi0) * dt
        y1    = y0 + v0 * sin(psi0) * dt
        psi1  = psi0 + v0 / Lf * delta * dt
        v1    = v0 + a * dt
        cte1  = f(x0) - y0 + v0 * sin(epsi0) * dt
        epsi1 = psi0 - atan(f'(x0)) + v0 / Lf * delta * dt

    Args:
        state: Current state.
        delta: Steering angle (radians, positive turns counter-clockwise).
        a: Throttle / acceleration.
        dt: Step duration (seconds).
        coeffs: Reference path polynomial, lowest order first.
        lf: Front axle to center of gravity distance (m).

    Returns:
        The state after dt.
    """
    x0, y0, psi0, v0, _, epsi0 = state
    f0 = polyeval(coeffs, x0)
    psides0 = math.atan(polyderiv(coeffs, x0))

    return VehicleState(
        x=x0 + v0 * math.cos(psi0) * dt,
        y=y0 + v0 * math.sin(psi0) * dt,
        psi=psi0 + v0 / lf * delta * dt,
        v=v0 + a * dt,
        cte=f0 - y0 + v0 * math.sin(epsi0) * dt,
        epsi=psi0 - psides0 + v0 / lf * delta * dt,
    )
