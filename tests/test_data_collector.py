"""
Unit tests for CSV run logging.
"""

import csv
from pathlib import Path

import pytest

from mpc_control.controller import ControlSession, run_cycle
from mpc_control.data_collector import DataCollector
from mpc_control.horizon import HorizonParams


def read_rows(path: Path) -> list[dict]:
    with open(path, newline="") as f:
        return list(csv.DictReader(f))


def make_telemetry(**overrides) -> dict:
    telemetry = {
        "ptsx": [0.0, 10.0, 20.0, 30.0, 40.0, 50.0],
        "ptsy": [0.0] * 6,
        "x": 0.0,
        "y": 0.0,
        "psi": 0.0,
        "speed": 10.0,
        "steering_angle": 0.0,
        "throttle": 0.0,
    }
    telemetry.update(overrides)
    return telemetry


class TestDataCollector:
    """Test suite for DataCollector"""

    @pytest.fixture
    def session(self) -> ControlSession:
        """Session with a generous solver budget"""
        return ControlSession(params=HorizonParams(solver_timeout=5.0))

    def test_creates_timestamped_run_dir(self, tmp_path: Path, monkeypatch) -> None:
        """Test that the default run directory lives under results/"""
        monkeypatch.delenv("RUN_DIR", raising=False)
        collector = DataCollector(output_dir=str(tmp_path))

        assert collector.run_dir.parent == tmp_path / "results"
        assert collector.run_dir.name.startswith("run_")
        assert collector.run_dir.is_dir()

    def test_run_dir_from_environment(self, tmp_path: Path, monkeypatch) -> None:
        """Test the RUN_DIR override"""
        monkeypatch.setenv("RUN_DIR", str(tmp_path / "custom"))

        collector = DataCollector(output_dir=str(tmp_path))

        assert collector.run_dir == tmp_path / "custom"

    def test_output_dir_must_be_directory(self, tmp_path: Path) -> None:
        """Test that a file path is rejected"""
        file_path = tmp_path / "not_a_dir"
        file_path.write_text("")

        with pytest.raises(ValueError):
            DataCollector(output_dir=str(file_path))

    def test_writes_headers(self, tmp_path: Path) -> None:
        """Test that setup writes one header row per file"""
        with DataCollector(run_dir=str(tmp_path / "run")) as collector:
            pass

        for path, header in (
            (collector.telemetry_output_path, DataCollector.TELEMETRY_HEADER),
            (collector.command_output_path, DataCollector.COMMAND_HEADER),
            (collector.solver_output_path, DataCollector.SOLVER_HEADER),
        ):
            with open(path, newline="") as f:
                assert next(csv.reader(f)) == header

    def test_logs_successful_cycle(self, tmp_path: Path, session: ControlSession) -> None:
        """Test one row per file for a solved cycle"""
        result = run_cycle(session, make_telemetry())

        with DataCollector(run_dir=str(tmp_path / "run")) as collector:
            collector.log_cycle(1.5, result)

        telemetry_rows = read_rows(collector.telemetry_output_path)
        command_rows = read_rows(collector.command_output_path)
        solver_rows = read_rows(collector.solver_output_path)

        assert len(telemetry_rows) == 1
        assert telemetry_rows[0]["n_waypoints"] == "6"
        assert command_rows[0]["status"] == result.status
        assert float(command_rows[0]["steering_angle"]) == pytest.approx(result.command.steering_angle)
        assert float(solver_rows[0]["pred_x"]) == pytest.approx(result.predicted.x)

    def test_logs_skipped_cycle(self, tmp_path: Path, session: ControlSession) -> None:
        """Test that a skipped cycle leaves actuator columns empty"""
        result = run_cycle(session, {"ptsx": []})

        with DataCollector(run_dir=str(tmp_path / "run")) as collector:
            collector.log_cycle(2.0, result)

        command_rows = read_rows(collector.command_output_path)
        solver_rows = read_rows(collector.solver_output_path)

        telemetry_rows = read_rows(collector.telemetry_output_path)
        assert len(telemetry_rows) == 1
        assert float(telemetry_rows[0]["timestamp"]) == pytest.approx(2.0)
        assert telemetry_rows[0]["x"] == ""
        assert command_rows[0]["status"] == "skipped"
        assert command_rows[0]["steering_angle"] == ""
        assert solver_rows[0]["error"] != ""

    def test_files_stay_aligned_across_skipped_cycles(self, tmp_path: Path, session: ControlSession) -> None:
        """Test that every file gets one row per cycle, skipped or not"""
        results = [
            run_cycle(session, make_telemetry()),
            run_cycle(session, {"ptsx": []}),
            run_cycle(session, make_telemetry(speed=12.0)),
        ]

        with DataCollector(run_dir=str(tmp_path / "run")) as collector:
            for i, result in enumerate(results):
                collector.log_cycle(float(i), result)

        telemetry_rows = read_rows(collector.telemetry_output_path)
        command_rows = read_rows(collector.command_output_path)
        solver_rows = read_rows(collector.solver_output_path)

        assert len(telemetry_rows) == len(command_rows) == len(solver_rows) == 3
        for t_row, c_row, s_row in zip(telemetry_rows, command_rows, solver_rows):
            assert t_row["timestamp"] == c_row["timestamp"] == s_row["timestamp"]
        assert telemetry_rows[1]["speed"] == ""
        assert float(telemetry_rows[2]["speed"]) == pytest.approx(12.0)
