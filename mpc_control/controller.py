"""Per-session control pipeline.

One call to run_cycle processes one telemetry record end to end:

    telemetry -> vehicle frame -> polynomial fit -> tracking errors
              -> latency prediction -> horizon solve -> actuator mapping

Everything a cycle computes is local to that call. The only state carried
between cycles lives on the ControlSession: counters and the last command
that came out of a successful solve, which is reused when the solver fails.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import numpy as np

from .actuator import ActuatorMapper
from .errors import ControlError, FittingError, InputError, OptimizationError
from .horizon import HorizonParams
from .model import VehicleState, predict_state
from .mpc import OptimizationResult, TrajectoryOptimizer
from .path import polyfit, reference_line, tracking_errors
from .telemetry import ControlCommand, Telemetry, parse_telemetry
from .transform import to_vehicle_frame

STATUS_OK = "ok"
STATUS_SKIPPED = "skipped"
STATUS_FALLBACK = "fallback"


@dataclass
class CycleResult:
    """Outcome of one control cycle.

    Attributes:
        status: STATUS_OK, STATUS_SKIPPED (no command) or STATUS_FALLBACK.
        command: Command to send, None when the cycle was skipped.
        measured: Vehicle-frame state at telemetry receipt.
        predicted: State after the actuation delay (optimizer input).
        coeffs: Fitted path polynomial.
        solution: Optimizer output, None unless status is STATUS_OK.
        error: The contained error for skipped and fallback cycles.
        telemetry: Parsed telemetry, None if parsing failed.
    """

    status: str
    command: Optional[ControlCommand] = None
    measured: Optional[VehicleState] = None
    predicted: Optional[VehicleState] = None
    coeffs: Optional[np.ndarray] = None
    solution: Optional[OptimizationResult] = None
    error: Optional[ControlError] = None
    telemetry: Optional[Telemetry] = None


@dataclass
class ControlSession:
    """Control context for one vehicle connection.

    Attributes:
        params: Validated, read-only horizon parameters.
        optimizer: Trajectory optimizer (stateless between solves).
        mapper: Actuator unit conversion.
        last_command: Last command produced by a successful solve.
        cycles: Number of cycles processed.
        skipped: Cycles dropped on input or fitting errors.
        solver_failures: Cycles that fell back after an optimizer failure.
    """

    params: HorizonParams = field(default_factory=HorizonParams)
    optimizer: Optional[TrajectoryOptimizer] = None
    mapper: Optional[ActuatorMapper] = None
    last_command: Optional[ControlCommand] = None
    cycles: int = 0
    skipped: int = 0
    solver_failures: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.optimizer is None:
            self.optimizer = TrajectoryOptimizer(self.params)
        if self.mapper is None:
            self.mapper = ActuatorMapper(
                max_steering=self.params.max_steering,
                throttle_min=self.params.throttle_min,
                throttle_max=self.params.throttle_max,
            )

    @property
    def min_waypoints(self) -> int:
        return self.params.fit_degree + 1

    def fallback_command(
        self, next_x: Optional[List[float]] = None, next_y: Optional[List[float]] = None
    ) -> ControlCommand:
        """Last-known-good steering/throttle, or neutral if there is none."""
        if self.last_command is None:
            steering, throttle = 0.0, 0.0
        else:
            steering = self.last_command.steering_angle
            throttle = self.last_command.throttle
        return ControlCommand(
            steering_angle=steering,
            throttle=throttle,
            next_x=list(next_x or []),
            next_y=list(next_y or []),
        )


def run_cycle(session: ControlSession, telemetry: Union[Telemetry, Dict[str, Any]]) -> CycleResult:
    """Process one telemetry record and produce the command for this cycle.

    Input and fitting errors skip the cycle (no command). Optimizer errors
    emit the session's fallback command. Neither is raised to the caller.

    Args:
        session: The vehicle's control session.
        telemetry: Parsed Telemetry or the raw decoded telemetry payload.

    Returns:
        CycleResult describing what happened.
    """
    with session.lock:
        session.cycles += 1
        cycle = session.cycles
        params = session.params

        try:
            if not isinstance(telemetry, Telemetry):
                telemetry = parse_telemetry(telemetry, min_waypoints=session.min_waypoints)
            xs, ys = to_vehicle_frame(
                telemetry.x, telemetry.y, telemetry.psi, telemetry.ptsx, telemetry.ptsy
            )
            coeffs = polyfit(xs, ys, params.fit_degree)
        except (InputError, FittingError) as e:
            session.skipped += 1
            logging.warning(f"Cycle {cycle} skipped ({type(e).__name__}): {e}")
            parsed = telemetry if isinstance(telemetry, Telemetry) else None
            return CycleResult(status=STATUS_SKIPPED, error=e, telemetry=parsed)

        cte, epsi = tracking_errors(coeffs)
        measured = VehicleState(0.0, 0.0, 0.0, telemetry.speed, cte, epsi)
        predicted = predict_state(
            measured,
            telemetry.steering_angle,
            telemetry.throttle,
            params.latency,
            params.lf,
        )
        next_x, next_y = reference_line(coeffs)

        try:
            solution = session.optimizer.solve(predicted, coeffs)
        except OptimizationError as e:
            session.solver_failures += 1
            command = session.fallback_command(next_x, next_y)
            logging.warning(
                f"Cycle {cycle} solver failure, using fallback "
                f"(steering={command.steering_angle:.3f}, throttle={command.throttle:.3f}): {e}"
            )
            return CycleResult(
                status=STATUS_FALLBACK,
                command=command,
                measured=measured,
                predicted=predicted,
                coeffs=coeffs,
                error=e,
                telemetry=telemetry,
            )

        steering, throttle = session.mapper.to_command(solution.steering, solution.throttle)
        command = ControlCommand(
            steering_angle=steering,
            throttle=throttle,
            mpc_x=solution.mpc_x,
            mpc_y=solution.mpc_y,
            next_x=next_x,
            next_y=next_y,
        )
        session.last_command = command

        logging.debug(
            f"Cycle {cycle}: cte={cte:.3f} epsi={epsi:.4f} v={telemetry.speed:.2f} "
            f"-> steering={steering:.3f} throttle={throttle:.3f}"
        )

        return CycleResult(
            status=STATUS_OK,
            command=command,
            measured=measured,
            predicted=predicted,
            coeffs=coeffs,
            solution=solution,
            telemetry=telemetry,
        )
