"""
Unit tests for the trajectory optimizer.

Tests TrajectoryOptimizer.solve on small, well-understood problems and checks
the analytic derivatives against finite differences.
"""

import numpy as np
import pytest

from mpc_control.errors import OptimizationError
from mpc_control.horizon import HorizonParams
from mpc_control.model import VehicleState
from mpc_control.mpc import OptimizationResult, TrajectoryOptimizer

STRAIGHT = np.array([0.0, 0.0, 0.0, 0.0])
LEFT_CURVE = np.array([0.0, 0.1, 0.005, 0.0])


def _finite_difference(fun, z: np.ndarray, eps: float = 1e-6) -> np.ndarray:
    columns = []
    for i in range(z.size):
        step = np.zeros_like(z)
        step[i] = eps
        columns.append((np.asarray(fun(z + step)) - np.asarray(fun(z - step))) / (2 * eps))
    return np.stack(columns, axis=-1)


class TestTrajectoryOptimizer:
    """Test suite for TrajectoryOptimizer"""

    @pytest.fixture
    def params(self) -> HorizonParams:
        """Default horizon with a generous time budget for test machines"""
        return HorizonParams(solver_timeout=5.0)

    @pytest.fixture
    def optimizer(self, params: HorizonParams) -> TrajectoryOptimizer:
        """Optimizer over the default horizon"""
        return TrajectoryOptimizer(params)

    def test_layout(self, optimizer: TrajectoryOptimizer, params: HorizonParams) -> None:
        """Test decision vector size: 6 states x (N+1) plus 2 actuators x N"""
        n = params.n_steps
        assert optimizer.n_vars == 6 * (n + 1) + 2 * n
        assert optimizer.n_constraints == 6 * (n + 1)
        assert len(optimizer.bounds) == optimizer.n_vars

    def test_initial_guess_is_feasible(self, optimizer: TrajectoryOptimizer) -> None:
        """Test that the zero-actuator rollout satisfies the dynamics"""
        state = VehicleState(0.0, 0.0, 0.0, 12.0, 0.3, -0.1)
        z0 = optimizer.initial_guess(state, LEFT_CURVE)

        residual = optimizer.constraints(z0, state.as_array(), LEFT_CURVE)

        np.testing.assert_allclose(residual, 0.0, atol=1e-9)

    def test_cost_gradient_matches_finite_difference(self, optimizer: TrajectoryOptimizer) -> None:
        """Test the analytic cost gradient"""
        rng = np.random.default_rng(7)
        z = rng.normal(size=optimizer.n_vars)

        numeric = _finite_difference(optimizer.cost, z)

        np.testing.assert_allclose(optimizer.cost_gradient(z), numeric, rtol=1e-5, atol=1e-3)

    def test_constraint_jacobian_matches_finite_difference(
        self, optimizer: TrajectoryOptimizer
    ) -> None:
        """Test the analytic constraint Jacobian"""
        rng = np.random.default_rng(11)
        z = rng.normal(scale=0.5, size=optimizer.n_vars)
        init = np.array([0.0, 0.0, 0.0, 5.0, 0.2, -0.1])

        numeric = _finite_difference(lambda zz: optimizer.constraints(zz, init, LEFT_CURVE), z)
        analytic = optimizer.constraints_jacobian(z, init, LEFT_CURVE)

        np.testing.assert_allclose(analytic, numeric, atol=1e-6)

    def test_aligned_on_straight_path(self, optimizer: TrajectoryOptimizer, params: HorizonParams) -> None:
        """Test that an aligned car at reference speed needs no correction"""
        state = VehicleState(0.0, 0.0, 0.0, params.ref_speed, 0.0, 0.0)

        result = optimizer.solve(state, STRAIGHT)

        assert isinstance(result, OptimizationResult)
        assert result.steering == pytest.approx(0.0, abs=1e-4)
        assert result.throttle == pytest.approx(0.0, abs=1e-4)

    def test_accelerates_from_rest(self, optimizer: TrajectoryOptimizer) -> None:
        """Test that a stationary car on a straight path drives forward"""
        state = VehicleState(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

        result = optimizer.solve(state, STRAIGHT)

        assert result.throttle > 0.0
        assert result.steering == pytest.approx(0.0, abs=1e-3)

    def test_steers_toward_left_curve(self, optimizer: TrajectoryOptimizer) -> None:
        """Test that a path turning left gives positive (counter-clockwise) delta"""
        state = VehicleState(0.0, 0.0, 0.0, 10.0, 0.0, -np.arctan(0.1))

        result = optimizer.solve(state, LEFT_CURVE)

        assert result.steering > 0.0

    def test_trajectory_length(self, optimizer: TrajectoryOptimizer, params: HorizonParams) -> None:
        """Test that the plan has one point per horizon step"""
        state = VehicleState(0.0, 0.0, 0.0, 15.0, 0.0, 0.0)

        result = optimizer.solve(state, STRAIGHT)

        assert len(result.mpc_x) == params.n_steps
        assert len(result.mpc_y) == params.n_steps
        assert result.mpc_x == sorted(result.mpc_x)

    @pytest.mark.parametrize(
        "state, coeffs",
        [
            (VehicleState(0.0, 0.0, 0.0, 30.0, 1.5, 0.2), [1.5, -0.2, 0.0, 0.0]),
            (VehicleState(0.0, 0.0, 0.0, 50.0, -1.0, -0.3), [-1.0, 0.3, 0.01, 0.0]),
            (VehicleState(0.0, 0.0, 0.0, 5.0, 0.5, 0.0), [0.5, 0.0, -0.004, 0.0]),
        ],
    )
    def test_respects_bounds(
        self, optimizer: TrajectoryOptimizer, params: HorizonParams, state, coeffs
    ) -> None:
        """Test that returned actuators stay within their bounds"""
        result = optimizer.solve(state, coeffs)

        assert -params.max_steering <= result.steering <= params.max_steering
        assert params.throttle_min <= result.throttle <= params.throttle_max
        assert np.isfinite(result.cost)

    def test_timeout_raises(self) -> None:
        """Test that exceeding the time budget raises OptimizationError"""
        optimizer = TrajectoryOptimizer(HorizonParams(solver_timeout=1e-9))
        state = VehicleState(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

        with pytest.raises(OptimizationError):
            optimizer.solve(state, STRAIGHT)

    def test_non_finite_input_raises(self, optimizer: TrajectoryOptimizer) -> None:
        """Test that NaN in the initial state is reported, not solved"""
        state = VehicleState(0.0, 0.0, 0.0, float("nan"), 0.0, 0.0)

        with pytest.raises(OptimizationError):
            optimizer.solve(state, STRAIGHT)
