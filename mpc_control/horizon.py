"""
Horizon parameters for the tracking controller.

This module snapshots the constants from config.py into one immutable object
that is validated once at startup and then shared read-only by every control
session. Command-line flags can override individual values for a run.
"""

from dataclasses import asdict, dataclass
import argparse
import sys

from . import config
from .errors import ConfigError


@dataclass(frozen=True)
class HorizonParams:
    """Process-wide horizon, actuator and cost configuration."""

    # Horizon
    n_steps: int = config.HORIZON_STEPS
    dt: float = config.STEP_DT
    latency: float = config.LATENCY
    fit_degree: int = config.FIT_DEGREE

    # Vehicle / actuators
    lf: float = config.LF
    max_steering: float = config.MAX_STEERING
    throttle_min: float = config.THROTTLE_MIN
    throttle_max: float = config.THROTTLE_MAX
    ref_speed: float = config.REFERENCE_SPEED

    # Cost weights
    w_cte: float = config.W_CTE
    w_epsi: float = config.W_EPSI
    w_v: float = config.W_V
    w_delta: float = config.W_DELTA
    w_a: float = config.W_A
    w_ddelta: float = config.W_DDELTA
    w_da: float = config.W_DA

    # Solver
    solver_timeout: float = config.SOLVER_TIMEOUT
    solver_max_iter: int = config.SOLVER_MAX_ITER
    solver_ftol: float = config.SOLVER_FTOL

    def validate(self, min_waypoints=None):
        """Check the configuration and raise ConfigError on the first problem.

        Args:
            min_waypoints: Smallest waypoint count the transport will deliver,
                if known. The fit degree must be below it.

        Returns:
            self, so startup code can write ``params = HorizonParams().validate()``.
        """
        if self.n_steps <= 0:
            raise ConfigError(f"Horizon length must be positive, got {self.n_steps}")
        if self.dt <= 0:
            raise ConfigError(f"Step duration must be positive, got {self.dt}")
        if self.latency < 0:
            raise ConfigError(f"Actuation delay cannot be negative, got {self.latency}")
        if self.fit_degree < 1:
            raise ConfigError(f"Fit degree must be at least 1, got {self.fit_degree}")
        if min_waypoints is not None and self.fit_degree >= min_waypoints:
            raise ConfigError(
                f"Fit degree {self.fit_degree} needs at least {self.fit_degree + 1} "
                f"waypoints, transport delivers {min_waypoints}"
            )
        if self.lf <= 0:
            raise ConfigError(f"Lf must be positive, got {self.lf}")
        if self.max_steering <= 0:
            raise ConfigError(f"Steering bound must be positive, got {self.max_steering}")
        if not self.throttle_min < self.throttle_max:
            raise ConfigError(
                f"Throttle bounds are empty: [{self.throttle_min}, {self.throttle_max}]"
            )
        if self.throttle_min > 0 or self.throttle_max < 0:
            raise ConfigError("Throttle bounds must contain the neutral command 0.0")
        weights = (self.w_cte, self.w_epsi, self.w_v, self.w_delta, self.w_a,
                   self.w_ddelta, self.w_da)
        if any(w < 0 for w in weights):
            raise ConfigError("Cost weights must be non-negative")
        if self.solver_timeout <= 0:
            raise ConfigError(f"Solver timeout must be positive, got {self.solver_timeout}")
        if self.solver_timeout > self.dt:
            raise ConfigError(
                f"Solver timeout {self.solver_timeout}s exceeds the control period {self.dt}s"
            )
        if self.solver_max_iter <= 0:
            raise ConfigError(f"Solver iteration cap must be positive, got {self.solver_max_iter}")
        return self

    def __str__(self):
        """Human-readable summary of the horizon."""
        return (
            f"N={self.n_steps} dt={self.dt:.3f}s L={self.latency:.3f}s "
            f"v_ref={self.ref_speed:.1f} timeout={self.solver_timeout:.2f}s"
        )

    def to_dict(self):
        """Convert to dictionary for logging."""
        return asdict(self)


def parse_horizon_flags(args=None):
    """
    Parse command-line flags that override horizon parameters.

    Args:
        args: List of command-line arguments (default: sys.argv[1:])

    Returns:
        tuple: (HorizonParams, remaining_args)
            - HorizonParams with overrides applied (not yet validated)
            - List of remaining arguments not consumed
    """
    parser = argparse.ArgumentParser(add_help=False)

    parser.add_argument('--horizon', type=int, default=config.HORIZON_STEPS,
                        help='Number of horizon steps N')
    parser.add_argument('--dt', type=float, default=config.STEP_DT,
                        help='Duration of one horizon step (seconds)')
    parser.add_argument('--latency', type=float, default=config.LATENCY,
                        help='Actuation delay compensated by state prediction (seconds)')
    parser.add_argument('--ref-speed', type=float, default=config.REFERENCE_SPEED,
                        help='Reference speed tracked by the cost function')
    parser.add_argument('--timeout', type=float, default=config.SOLVER_TIMEOUT,
                        help='Solver wall-clock budget per cycle (seconds)')

    if args is None:
        args = sys.argv[1:]

    known_args, remaining_args = parser.parse_known_args(args)

    params = HorizonParams(
        n_steps=known_args.horizon,
        dt=known_args.dt,
        latency=known_args.latency,
        ref_speed=known_args.ref_speed,
        solver_timeout=known_args.timeout,
    )

    return params, remaining_args
