"""
Unit tests for world/vehicle frame conversion.
"""

import itertools

import numpy as np
import pytest

from mpc_control.errors import InputError
from mpc_control.transform import to_vehicle_frame, to_world_frame


class TestVehicleFrame:
    """Test suite for to_vehicle_frame / to_world_frame"""

    @pytest.fixture
    def waypoints(self) -> tuple[np.ndarray, np.ndarray]:
        """Six world-frame waypoints along a gentle curve"""
        ptsx = np.array([-32.16, -43.49, -61.09, -78.29, -93.05, -107.76])
        ptsy = np.array([113.36, 105.94, 92.88, 78.73, 65.34, 50.57])
        return ptsx, ptsy

    @pytest.mark.parametrize(
        "px, py, psi",
        [(0.0, 0.0, 0.0), (-40.62, 108.73, 3.733651), (12.5, -7.0, -1.2), (1e3, 1e3, np.pi)],
    )
    def test_round_trip(self, waypoints, px: float, py: float, psi: float) -> None:
        """Test that transforming to the vehicle frame and back is the identity"""
        ptsx, ptsy = waypoints
        xv, yv = to_vehicle_frame(px, py, psi, ptsx, ptsy)
        xw, yw = to_world_frame(px, py, psi, xv, yv)

        np.testing.assert_allclose(xw, ptsx, atol=1e-9)
        np.testing.assert_allclose(yw, ptsy, atol=1e-9)

    def test_preserves_pairwise_distances(self, waypoints) -> None:
        """Test that the transform is rigid"""
        ptsx, ptsy = waypoints
        xv, yv = to_vehicle_frame(-40.62, 108.73, 3.733651, ptsx, ptsy)

        for i, j in itertools.combinations(range(len(ptsx)), 2):
            world = np.hypot(ptsx[i] - ptsx[j], ptsy[i] - ptsy[j])
            vehicle = np.hypot(xv[i] - xv[j], yv[i] - yv[j])
            assert vehicle == pytest.approx(world, rel=1e-12)

    def test_point_ahead_lies_on_positive_x(self) -> None:
        """Test that a point straight ahead of the car maps onto +x"""
        psi = np.pi / 2  # facing world +y
        xv, yv = to_vehicle_frame(5.0, 5.0, psi, [5.0], [15.0])

        assert xv[0] == pytest.approx(10.0)
        assert yv[0] == pytest.approx(0.0, abs=1e-12)

    def test_point_to_the_left_has_positive_y(self) -> None:
        """Test that a point left of the car has positive vehicle-frame y"""
        xv, yv = to_vehicle_frame(0.0, 0.0, 0.0, [0.0], [3.0])

        assert xv[0] == pytest.approx(0.0)
        assert yv[0] == pytest.approx(3.0)

    def test_preserves_order_and_length(self, waypoints) -> None:
        """Test that output arrays match input length"""
        ptsx, ptsy = waypoints
        xv, yv = to_vehicle_frame(0.0, 0.0, 0.3, ptsx, ptsy)

        assert xv.shape == ptsx.shape
        assert yv.shape == ptsy.shape

    def test_empty_waypoints_rejected(self) -> None:
        """Test that an empty waypoint list raises InputError"""
        with pytest.raises(InputError):
            to_vehicle_frame(0.0, 0.0, 0.0, [], [])

    def test_length_mismatch_rejected(self) -> None:
        """Test that mismatched coordinate lists raise InputError"""
        with pytest.raises(InputError):
            to_vehicle_frame(0.0, 0.0, 0.0, [1.0, 2.0], [1.0])
