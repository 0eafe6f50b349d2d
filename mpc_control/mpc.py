"""Finite-horizon trajectory optimizer (the MPC core).

Each cycle the optimizer solves one nonlinear program over the whole
horizon: the decision vector holds the state trajectory for t = 0..N and the
actuator sequence for t = 0..N-1, tied together by the kinematic bicycle
model as equality constraints. Only the first actuator pair is applied; the
rest of the plan is discarded and re-solved next cycle.

Decision vector layout (N = horizon steps):

    [ x_0..x_N | y_0..y_N | psi_0..psi_N | v_0..v_N | cte_0..cte_N |
      epsi_0..epsi_N | delta_0..delta_{N-1} | a_0..a_{N-1} ]

The solve uses SciPy's SLSQP (sequential quadratic programming) with
analytic gradients. The optimizer keeps no state between calls.
"""

import logging
import time
from dataclasses import dataclass
from typing import List

import numpy as np
from numpy.polynomial import polynomial as P
from scipy.optimize import minimize

from .errors import OptimizationError
from .horizon import HorizonParams
from .model import VehicleState, bicycle_step

# Maximum summed equality-constraint residual accepted on a "successful" solve
FEASIBILITY_TOLERANCE = 1e-3


@dataclass
class OptimizationResult:
    """Outcome of one horizon solve.

    Attributes:
        steering: First-step steering angle (radians, positive = counter-clockwise).
        throttle: First-step throttle.
        mpc_x: Predicted x positions for steps 1..N (vehicle frame).
        mpc_y: Predicted y positions for steps 1..N (vehicle frame).
        cost: Objective value at the solution.
        iterations: SQP iterations used.
        solve_time: Wall-clock time of the solve (seconds).
    """

    steering: float
    throttle: float
    mpc_x: List[float]
    mpc_y: List[float]
    cost: float
    iterations: int
    solve_time: float


class _SolverTimeout(Exception):
    """Raised from the SLSQP callback once the time budget is spent."""


class TrajectoryOptimizer:
    """Receding-horizon optimizer over a kinematic bicycle model.

    The instance only holds the (read-only) horizon parameters and the index
    layout derived from them, so one optimizer may be shared by any number
    of sessions.

    Attributes:
        params: Horizon, bound and weight configuration.
        n_vars: Length of the decision vector.
        n_constraints: Number of equality constraints (6 per state).
    """

    def __init__(self, params: HorizonParams) -> None:
        self.params = params
        n = params.n_steps
        n1 = n + 1

        self.x_start = 0
        self.y_start = self.x_start + n1
        self.psi_start = self.y_start + n1
        self.v_start = self.psi_start + n1
        self.cte_start = self.v_start + n1
        self.epsi_start = self.cte_start + n1
        self.delta_start = self.epsi_start + n1
        self.a_start = self.delta_start + n
        self.n_vars = self.a_start + n
        self.n_constraints = 6 * n1

        self._state_starts = (
            self.x_start, self.y_start, self.psi_start,
            self.v_start, self.cte_start, self.epsi_start,
        )

        # Diagonal preconditioning: z = s * z_hat, chosen so the cost Hessian
        # is close to identity in z_hat, which matches SLSQP's initial BFGS guess.
        curvature = np.zeros(self.n_vars)
        curvature[self.cte_start:self.cte_start + n1] = 2.0 * params.w_cte
        curvature[self.epsi_start:self.epsi_start + n1] = 2.0 * params.w_epsi
        curvature[self.v_start:self.v_start + n1] = 2.0 * params.w_v
        curvature[self.delta_start:self.a_start] = 2.0 * (params.w_delta + 2.0 * params.w_ddelta)
        curvature[self.a_start:] = 2.0 * (params.w_a + 2.0 * params.w_da)
        self._scale = np.where(curvature > 1.0, 1.0 / np.sqrt(np.maximum(curvature, 1.0)), 1.0)

        bounds = [(None, None)] * self.delta_start
        bounds += [(-params.max_steering, params.max_steering)] * n
        bounds += [(params.throttle_min, params.throttle_max)] * n
        self.bounds = [
            (lo / s if lo is not None else None, hi / s if hi is not None else None)
            for (lo, hi), s in zip(bounds, self._scale)
        ]

    # ------------------------------------------------------------------
    # Decision vector helpers
    # ------------------------------------------------------------------

    def _unpack(self, z: np.ndarray):
        n1 = self.params.n_steps + 1
        states = [z[start:start + n1] for start in self._state_starts]
        delta = z[self.delta_start:self.a_start]
        a = z[self.a_start:self.n_vars]
        return states, delta, a

    def initial_guess(self, state: VehicleState, coeffs) -> np.ndarray:
        """Roll the model out with zero actuators; the result is feasible."""
        p = self.params
        z = np.zeros(self.n_vars)
        current = state
        for t in range(p.n_steps + 1):
            for k, start in enumerate(self._state_starts):
                z[start + t] = current[k]
            if t < p.n_steps:
                current = bicycle_step(current, 0.0, 0.0, p.dt, coeffs, p.lf)
        return z

    # ------------------------------------------------------------------
    # Objective
    # ------------------------------------------------------------------

    def cost(self, z: np.ndarray) -> float:
        """Weighted tracking, effort and smoothness cost of a decision vector."""
        p = self.params
        (_, _, _, v, cte, epsi), delta, a = self._unpack(z)
        return float(
            p.w_cte * np.sum(cte ** 2)
            + p.w_epsi * np.sum(epsi ** 2)
            + p.w_v * np.sum((v - p.ref_speed) ** 2)
            + p.w_delta * np.sum(delta ** 2)
            + p.w_a * np.sum(a ** 2)
            + p.w_ddelta * np.sum(np.diff(delta) ** 2)
            + p.w_da * np.sum(np.diff(a) ** 2)
        )

    def cost_gradient(self, z: np.ndarray) -> np.ndarray:
        p = self.params
        n1 = p.n_steps + 1
        (_, _, _, v, cte, epsi), delta, a = self._unpack(z)

        grad = np.zeros(self.n_vars)
        grad[self.cte_start:self.cte_start + n1] = 2.0 * p.w_cte * cte
        grad[self.epsi_start:self.epsi_start + n1] = 2.0 * p.w_epsi * epsi
        grad[self.v_start:self.v_start + n1] = 2.0 * p.w_v * (v - p.ref_speed)

        for start, values, w, w_rate in (
            (self.delta_start, delta, p.w_delta, p.w_ddelta),
            (self.a_start, a, p.w_a, p.w_da),
        ):
            g = 2.0 * w * values
            rate = np.diff(values)
            g[:-1] -= 2.0 * w_rate * rate
            g[1:] += 2.0 * w_rate * rate
            grad[start:start + p.n_steps] = g
        return grad

    # ------------------------------------------------------------------
    # Dynamics constraints
    # ------------------------------------------------------------------

    def constraints(self, z: np.ndarray, init: np.ndarray, coeffs: np.ndarray) -> np.ndarray:
        """Equality residuals: initial state clamp plus one model step per t."""
        p = self.params
        n = p.n_steps
        (x, y, psi, v, cte, epsi), delta, a = self._unpack(z)
        x0, y0, psi0, v0, epsi0 = x[:-1], y[:-1], psi[:-1], v[:-1], epsi[:-1]

        f0 = P.polyval(x0, coeffs)
        psides0 = np.arctan(P.polyval(x0, P.polyder(coeffs)))

        g = np.empty(self.n_constraints)
        g[:6] = [x[0], y[0], psi[0], v[0], cte[0], epsi[0]]
        g[:6] -= init
        g[6 + 0 * n:6 + 1 * n] = x[1:] - (x0 + v0 * np.cos(psi0) * p.dt)
        g[6 + 1 * n:6 + 2 * n] = y[1:] - (y0 + v0 * np.sin(psi0) * p.dt)
        g[6 + 2 * n:6 + 3 * n] = psi[1:] - (psi0 + v0 / p.lf * delta * p.dt)
        g[6 + 3 * n:6 + 4 * n] = v[1:] - (v0 + a * p.dt)
        g[6 + 4 * n:6 + 5 * n] = cte[1:] - ((f0 - y0) + v0 * np.sin(epsi0) * p.dt)
        g[6 + 5 * n:6 + 6 * n] = epsi[1:] - ((psi0 - psides0) + v0 / p.lf * delta * p.dt)
        return g

    def constraints_jacobian(
        self, z: np.ndarray, init: np.ndarray, coeffs: np.ndarray
    ) -> np.ndarray:
        p = self.params
        n = p.n_steps
        dt = p.dt
        (x, _, psi, v, _, epsi), delta, _ = self._unpack(z)
        x0, psi0, v0, epsi0 = x[:-1], psi[:-1], v[:-1], epsi[:-1]

        d1 = P.polyder(coeffs)
        fp = P.polyval(x0, d1)
        fpp = P.polyval(x0, P.polyder(d1))

        jac = np.zeros((self.n_constraints, self.n_vars))
        for k, start in enumerate(self._state_starts):
            jac[k, start] = 1.0

        t = np.arange(n)

        def rows(k):
            return 6 + k * n + t

        # x_{t+1} = x_t + v_t cos(psi_t) dt
        r = rows(0)
        jac[r, self.x_start + t + 1] = 1.0
        jac[r, self.x_start + t] = -1.0
        jac[r, self.v_start + t] = -np.cos(psi0) * dt
        jac[r, self.psi_start + t] = v0 * np.sin(psi0) * dt

        # y_{t+1} = y_t + v_t sin(psi_t) dt
        r = rows(1)
        jac[r, self.y_start + t + 1] = 1.0
        jac[r, self.y_start + t] = -1.0
        jac[r, self.v_start + t] = -np.sin(psi0) * dt
        jac[r, self.psi_start + t] = -v0 * np.cos(psi0) * dt

        # psi_{t+1} = psi_t + v_t / Lf * delta_t dt
        r = rows(2)
        jac[r, self.psi_start + t + 1] = 1.0
        jac[r, self.psi_start + t] = -1.0
        jac[r, self.v_start + t] = -delta / p.lf * dt
        jac[r, self.delta_start + t] = -v0 / p.lf * dt

        # v_{t+1} = v_t + a_t dt
        r = rows(3)
        jac[r, self.v_start + t + 1] = 1.0
        jac[r, self.v_start + t] = -1.0
        jac[r, self.a_start + t] = -dt

        # cte_{t+1} = f(x_t) - y_t + v_t sin(epsi_t) dt
        r = rows(4)
        jac[r, self.cte_start + t + 1] = 1.0
        jac[r, self.x_start + t] = -fp
        jac[r, self.y_start + t] = 1.0
        jac[r, self.v_start + t] = -np.sin(epsi0) * dt
        jac[r, self.epsi_start + t] = -v0 * np.cos(epsi0) * dt

        # epsi_{t+1} = psi_t - atan(f'(x_t)) + v_t / Lf * delta_t dt
        r = rows(5)
        jac[r, self.epsi_start + t + 1] = 1.0
        jac[r, self.psi_start + t] = -1.0
        jac[r, self.x_start + t] = fpp / (1.0 + fp ** 2)
        jac[r, self.v_start + t] = -delta / p.lf * dt
        jac[r, self.delta_start + t] = -v0 / p.lf * dt
        return jac

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------

    def solve(self, state: VehicleState, coeffs) -> OptimizationResult:
        """Solve the horizon problem from the (latency-compensated) state.

        Args:
            state: Predicted vehicle state the plan starts from.
            coeffs: Reference path polynomial in the same vehicle frame.

        Returns:
            OptimizationResult with the first actuator pair and the plan.

        Raises:
            OptimizationError: On non-convergence, infeasibility, a
                non-finite solution, or when the time budget is exceeded.
        """
        p = self.params
        coeffs = np.asarray(coeffs, dtype=float)
        init = np.asarray(state, dtype=float)
        if not np.all(np.isfinite(init)) or not np.all(np.isfinite(coeffs)):
            raise OptimizationError("Non-finite initial state or path coefficients")

        s = self._scale
        z0 = self.initial_guess(state, coeffs) / s
        constraint = {
            "type": "eq",
            "fun": lambda zh: self.constraints(zh * s, init, coeffs),
            "jac": lambda zh: self.constraints_jacobian(zh * s, init, coeffs) * s,
        }

        start_time = time.monotonic()

        def check_budget(_xk):
            if time.monotonic() - start_time > p.solver_timeout:
                raise _SolverTimeout

        try:
            res = minimize(
                lambda zh: self.cost(zh * s),
                z0,
                jac=lambda zh: self.cost_gradient(zh * s) * s,
                method="SLSQP",
                bounds=self.bounds,
                constraints=[constraint],
                callback=check_budget,
                options={"maxiter": p.solver_max_iter, "ftol": p.solver_ftol},
            )
        except _SolverTimeout:
            raise OptimizationError(
                f"Solver exceeded its {p.solver_timeout:.3f}s budget"
            ) from None

        solve_time = time.monotonic() - start_time
        if solve_time > p.solver_timeout:
            raise OptimizationError(
                f"Solver exceeded its {p.solver_timeout:.3f}s budget ({solve_time:.3f}s)"
            )
        if not res.success:
            raise OptimizationError(f"Solver did not converge: {res.message}")

        z = res.x * s
        if not np.all(np.isfinite(z)):
            raise OptimizationError("Solver returned non-finite values")
        violation = float(np.sum(np.abs(self.constraints(z, init, coeffs))))
        if violation > FEASIBILITY_TOLERANCE:
            raise OptimizationError(f"Solution violates dynamics (residual {violation:.2e})")

        steering = float(np.clip(z[self.delta_start], -p.max_steering, p.max_steering))
        throttle = float(np.clip(z[self.a_start], p.throttle_min, p.throttle_max))
        n1 = p.n_steps + 1

        logging.debug(
            f"MPC solve: cost={res.fun:.3f} iters={res.nit} time={solve_time * 1000.0:.1f}ms "
            f"delta={steering:.4f} a={throttle:.4f}"
        )

        return OptimizationResult(
            steering=steering,
            throttle=throttle,
            mpc_x=z[self.x_start + 1:self.x_start + n1].tolist(),
            mpc_y=z[self.y_start + 1:self.y_start + n1].tolist(),
            cost=float(res.fun),
            iterations=int(res.nit),
            solve_time=solve_time,
        )
