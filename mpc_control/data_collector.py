"""Data collection and CSV logging for control cycles.

This module provides CSV data logging for:
- Telemetry (vehicle pose, speed, last actuator values)
- Commands (steering and throttle sent back, cycle status)
- Solver diagnostics (tracking errors, predicted state, cost, solve time)
"""

import csv
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO

from .config import TERM_BLUE, TERM_RESET
from .controller import CycleResult
from .telemetry import Telemetry


class DataCollector:
    """Manages CSV file creation and logging for control cycles.

    This class handles all data logging responsibilities:
    - Creates timestamped output directories
    - Initializes CSV files with headers
    - Writes telemetry, command and solver data per cycle
    - Ensures proper cleanup on shutdown

    Attributes:
        run_dir: Directory path for this run's output files.
        telemetry_csv_file: File handle for telemetry CSV.
        command_csv_file: File handle for command CSV.
        solver_csv_file: File handle for solver diagnostics CSV.
    """

    TELEMETRY_HEADER = ["timestamp", "x", "y", "psi", "speed", "steering_angle", "throttle", "n_waypoints"]
    COMMAND_HEADER = ["timestamp", "status", "steering_angle", "throttle"]
    SOLVER_HEADER = [
        "timestamp",
        "status",
        "cte",
        "epsi",
        "pred_x",
        "pred_v",
        "pred_cte",
        "pred_epsi",
        "cost",
        "iterations",
        "solve_time",
        "error",
    ]

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.telemetry_csv_file: Optional[TextIO] = None
        self.telemetry_csv_writer: Any = None
        self.command_csv_file: Optional[TextIO] = None
        self.command_csv_writer: Any = None
        self.solver_csv_file: Optional[TextIO] = None
        self.solver_csv_writer: Any = None

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.telemetry_output_path: Path = self.run_dir / "telemetry.csv"
        self.command_output_path: Path = self.run_dir / "commands.csv"
        self.solver_output_path: Path = self.run_dir / "solver.csv"

    def setup(self) -> None:
        """Initialize CSV files with headers.

        Must be called before writing data.
        """
        self.telemetry_csv_file = open(self.telemetry_output_path, "w", newline="")
        self.telemetry_csv_writer = csv.writer(self.telemetry_csv_file)
        self.telemetry_csv_writer.writerow(self.TELEMETRY_HEADER)
        self.telemetry_csv_file.flush()

        self.command_csv_file = open(self.command_output_path, "w", newline="")
        self.command_csv_writer = csv.writer(self.command_csv_file)
        self.command_csv_writer.writerow(self.COMMAND_HEADER)
        self.command_csv_file.flush()

        self.solver_csv_file = open(self.solver_output_path, "w", newline="")
        self.solver_csv_writer = csv.writer(self.solver_csv_file)
        self.solver_csv_writer.writerow(self.SOLVER_HEADER)
        self.solver_csv_file.flush()

        print(f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}/{TERM_RESET}")

    def log_telemetry(self, timestamp: float, telemetry: Telemetry) -> None:
        """Log one telemetry record to CSV.

        Args:
            timestamp: Receipt time (seconds).
            telemetry: Parsed telemetry record.
        """
        self.telemetry_csv_writer.writerow(
            [
                timestamp,
                telemetry.x,
                telemetry.y,
                telemetry.psi,
                telemetry.speed,
                telemetry.steering_angle,
                telemetry.throttle,
                len(telemetry.ptsx),
            ]
        )
        if self.telemetry_csv_file:
            self.telemetry_csv_file.flush()

    def log_cycle(self, timestamp: float, result: CycleResult) -> None:
        """Log the telemetry, command and solver diagnostics of one cycle.

        Skipped cycles write a telemetry row with only the timestamp when the
        telemetry could not be parsed, a command row with empty actuator
        values and a solver row carrying only the error message.

        Args:
            timestamp: Time the cycle finished (seconds).
            result: Outcome returned by run_cycle.
        """
        # One row per cycle in every file, so the files line up by index
        if result.telemetry is not None:
            self.log_telemetry(timestamp, result.telemetry)
        else:
            self.telemetry_csv_writer.writerow([timestamp] + [""] * (len(self.TELEMETRY_HEADER) - 1))
            if self.telemetry_csv_file:
                self.telemetry_csv_file.flush()

        command = result.command
        self.command_csv_writer.writerow(
            [
                timestamp,
                result.status,
                command.steering_angle if command is not None else "",
                command.throttle if command is not None else "",
            ]
        )
        if self.command_csv_file:
            self.command_csv_file.flush()

        measured = result.measured
        predicted = result.predicted
        solution = result.solution
        self.solver_csv_writer.writerow(
            [
                timestamp,
                result.status,
                measured.cte if measured is not None else "",
                measured.epsi if measured is not None else "",
                predicted.x if predicted is not None else "",
                predicted.v if predicted is not None else "",
                predicted.cte if predicted is not None else "",
                predicted.epsi if predicted is not None else "",
                solution.cost if solution is not None else "",
                solution.iterations if solution is not None else "",
                solution.solve_time if solution is not None else "",
                str(result.error) if result.error is not None else "",
            ]
        )
        if self.solver_csv_file:
            self.solver_csv_file.flush()

    def cleanup(self) -> None:
        """Close all CSV files and log final output location."""
        if self.telemetry_csv_file:
            self.telemetry_csv_file.close()
        if self.command_csv_file:
            self.command_csv_file.close()
        if self.solver_csv_file:
            self.solver_csv_file.close()

        print(f"{TERM_BLUE}✓ Saved cycle data to {self.run_dir}/{TERM_RESET}")

    def __enter__(self) -> "DataCollector":
        """Context manager entry point.

        Returns:
            Self reference for use in with statement.
        """
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit point - ensures cleanup is called."""
        self.cleanup()
