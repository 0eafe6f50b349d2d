"""Configuration parameters for the MPC tracking controller.

This module centralizes all configuration parameters including:
- Physical vehicle parameters
- Horizon and latency settings
- Cost function weights
- Solver limits
- Transport (WebSocket) parameters
- Visualization settings

All parameters are documented with their purpose, units, and tuning rationale.
Values are read once at startup (see horizon.HorizonParams) and never mutated
while the controller is running.
"""

import numpy as np

# ============================================================================
# Physical Vehicle Parameters
# ============================================================================

LF = 2.67
"""Distance from the front axle to the center of gravity (meters).

Used by the kinematic bicycle model to relate steering angle to heading rate.
Obtained by measuring the turning radius of the simulated vehicle at constant
steering and speed; the radius matched this value.
"""

MAX_STEERING_DEG = 25.0
"""Maximum steering angle magnitude (degrees). Hardware limit of the simulator."""

MAX_STEERING = float(np.deg2rad(MAX_STEERING_DEG))
"""Maximum steering angle magnitude (radians).

Optimizer bound on |delta| and the divisor that maps radians to the
normalized [-1, 1] actuator range.
"""

THROTTLE_MIN = -1.0
"""Minimum throttle (full brake / reverse). Actuator limit."""

THROTTLE_MAX = 1.0
"""Maximum throttle. Actuator limit."""


# ============================================================================
# Horizon Parameters
# ============================================================================

HORIZON_STEPS = 10
"""Number of steps N in the prediction horizon (range: [5, 25]).

Tuning rationale:
- N * DT = 1.0s of look-ahead covers the waypoints sent by the simulator
- Larger N makes the solve slower without improving tracking, since the
  fitted polynomial is unreliable beyond the last waypoint
"""

STEP_DT = 0.1
"""Duration of one horizon step (seconds).

Tuning rationale:
- Matches the actuation delay so one step of the plan covers one delay
- Smaller values need a larger N for the same look-ahead
"""

LATENCY = 0.1
"""Actuation delay L between computing a command and its effect (seconds).

The state is propagated forward by this amount before solving.
"""

REFERENCE_SPEED = 40.0
"""Target speed the cost function pulls toward (simulator speed units, mph)."""

FIT_DEGREE = 3
"""Degree of the polynomial fitted to the vehicle-frame waypoints.

A cubic follows the curvature changes of a typical road segment. Requires at
least FIT_DEGREE + 1 waypoints per cycle.
"""


# ============================================================================
# Cost Function Weights
# ============================================================================

W_CTE = 2000.0
"""Weight on squared cross-track error.

Tuning rationale:
- Dominant term; keeps the car centered on the reference line
- Lower values (< 500) let the car cut corners at speed
"""

W_EPSI = 2000.0
"""Weight on squared heading error. Balanced with W_CTE."""

W_V = 1.0
"""Weight on squared deviation from REFERENCE_SPEED.

Kept small so the car slows down in curves instead of sacrificing tracking.
"""

W_DELTA = 5.0
"""Weight on squared steering magnitude (control effort)."""

W_A = 5.0
"""Weight on squared throttle magnitude (control effort)."""

W_DDELTA = 200.0
"""Weight on squared change of steering between consecutive steps.

Tuning rationale:
- Penalizes jerky steering; without it the solution oscillates between bounds
- Too large (> 1000) makes the car slow to enter corners
"""

W_DA = 10.0
"""Weight on squared change of throttle between consecutive steps."""


# ============================================================================
# Solver Parameters
# ============================================================================

SOLVER_TIMEOUT = 0.1
"""Wall-clock budget for one optimization (seconds).

A solve exceeding this budget is treated as a failure and the fallback
command is emitted. Must not exceed the control period (STEP_DT);
HorizonParams.validate() rejects larger values.
"""

SOLVER_MAX_ITER = 150
"""Maximum SQP iterations per solve."""

SOLVER_FTOL = 1e-5
"""Objective tolerance for SQP convergence."""


# ============================================================================
# Display Parameters
# ============================================================================

REFERENCE_LINE_INCREMENT = 2.5
"""Spacing between displayed reference points (meters, vehicle frame)."""

REFERENCE_LINE_POINTS = 25
"""Number of displayed reference points (next_x / next_y)."""


# ============================================================================
# Visualization Colors (Monumental Branding)
# ============================================================================

MONUMENTAL_ORANGE = "#f74823"
"""Primary brand color - used for measured data and actual trajectory."""

MONUMENTAL_BLUE = "#2374f7"
"""Secondary brand color - used for reference and predicted values."""

MONUMENTAL_CREAM = "#fffdee"
"""Light color for text and labels on dark backgrounds."""

MONUMENTAL_TAUPE = "#686a5f"
"""Neutral color for guides, grids, and secondary elements."""

MONUMENTAL_YELLOW_ORANGE = "#ffa726"
"""Accent color for highlights and warnings (solver failures)."""

MONUMENTAL_DARK_BLUE = "#0d1b2a"
"""Dark background color for dark mode displays."""

# Terminal color codes (ANSI escape sequences)
TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for Monumental orange (RGB: 247, 72, 35)."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for complementary blue (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# WebSocket Configuration
# ============================================================================

WS_HOST = "0.0.0.0"
"""Interface the control server binds to."""

WS_PORT = 4567
"""Port the simulator connects to."""

WS_ACTUATION_DELAY_MS = 100
"""Artificial delay before each command is sent (milliseconds).

Mimics real driving conditions where the car does not actuate commands
instantly. Applied by the transport only, never inside the optimizer.
"""
