"""
Visualization of recorded control runs.

Loads the telemetry, command and solver CSV files written by DataCollector
and plots tracking errors, actuator commands and solver timing over the run.
"""

from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from .controller import STATUS_FALLBACK, STATUS_SKIPPED
from .plot_styles import (
    MONUMENTAL_BLUE,
    MONUMENTAL_CREAM,
    MONUMENTAL_DARK_BLUE,
    MONUMENTAL_ORANGE,
    MONUMENTAL_YELLOW_ORANGE,
    add_branded_legend,
    load_column_strings,
    load_csv_to_dict,
    style_axis,
)


def _relative_time(timestamps: np.ndarray) -> np.ndarray:
    if len(timestamps) == 0:
        return timestamps
    return timestamps - timestamps[0]


def plot_trajectory(telemetry: Dict[str, np.ndarray], save_path: Optional[Path] = None) -> Figure:
    """Plot the vehicle's world-frame path over the run."""
    fig, ax = plt.subplots(figsize=(10, 8), facecolor=MONUMENTAL_DARK_BLUE)

    x = telemetry["x"]
    y = telemetry["y"]
    valid_mask = ~(np.isnan(x) | np.isnan(y))
    x = x[valid_mask]
    y = y[valid_mask]

    if len(x) > 0:
        ax.plot(x, y, "-", color=MONUMENTAL_ORANGE, linewidth=1.5, label="Vehicle path")
        ax.plot(x[0], y[0], "o", color=MONUMENTAL_BLUE, markersize=8, label="Start")
        ax.plot(x[-1], y[-1], "o", color=MONUMENTAL_YELLOW_ORANGE, markersize=8, label="End")

    style_axis(ax, title="Vehicle Trajectory", xlabel="X (m)", ylabel="Y (m)")
    ax.set_aspect("equal", adjustable="datalim")
    add_branded_legend(ax)
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_control_summary(
    solver: Dict[str, np.ndarray],
    commands: Dict[str, np.ndarray],
    statuses: List[str],
    save_path: Optional[Path] = None,
) -> Figure:
    """Plot tracking errors, commands and solve times over the run.

    Fallback cycles are marked on the command axis; skipped cycles appear
    as gaps because their rows carry no values.

    Args:
        solver: Columns of solver.csv.
        commands: Columns of commands.csv.
        statuses: Status string per commands.csv row.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.
    """
    fig, (ax1, ax2, ax3) = plt.subplots(
        3, 1, figsize=(12, 10), sharex=True, facecolor=MONUMENTAL_DARK_BLUE
    )

    t_solver = _relative_time(solver["timestamp"])
    t_cmd = _relative_time(commands["timestamp"])

    ax1.plot(t_solver, solver["cte"], color=MONUMENTAL_ORANGE, label="Cross-track error (m)")
    ax1.plot(t_solver, solver["epsi"], color=MONUMENTAL_BLUE, label="Heading error (rad)")
    ax1.axhline(0.0, color=MONUMENTAL_CREAM, linewidth=0.5, alpha=0.5)
    style_axis(ax1, title="Tracking Errors", ylabel="Error")
    add_branded_legend(ax1, loc="upper right")

    ax2.plot(t_cmd, commands["steering_angle"], color=MONUMENTAL_ORANGE, label="Steering")
    ax2.plot(t_cmd, commands["throttle"], color=MONUMENTAL_BLUE, label="Throttle")
    fallback = np.array([status == STATUS_FALLBACK for status in statuses], dtype=bool)
    if fallback.any():
        ax2.scatter(
            t_cmd[fallback],
            commands["steering_angle"][fallback],
            color=MONUMENTAL_YELLOW_ORANGE,
            s=25,
            zorder=3,
            label="Fallback",
        )
    ax2.set_ylim(-1.1, 1.1)
    style_axis(ax2, title="Actuator Commands", ylabel="Command [-1, 1]")
    add_branded_legend(ax2, loc="upper right")

    ax3.plot(t_solver, solver["solve_time"] * 1000.0, color=MONUMENTAL_YELLOW_ORANGE, label="Solve time")
    style_axis(ax3, title="Solver", xlabel="Time (s)", ylabel="Solve time (ms)")
    add_branded_legend(ax3, loc="upper right")

    n_skipped = sum(status == STATUS_SKIPPED for status in statuses)
    fig.suptitle(
        f"{len(statuses)} cycles, {int(fallback.sum())} fallback, {n_skipped} skipped",
        color=MONUMENTAL_CREAM,
        fontweight="bold",
    )
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_run_summary(run_dir: Path, save_plots: bool = False, show_plots: bool = True) -> None:
    """Generate summary plots for a recorded run.

    Args:
        run_dir: Directory containing telemetry.csv, commands.csv and solver.csv.
        save_plots: If True, save plots to run directory.
        show_plots: If True, display plots interactively.

    Raises:
        FileNotFoundError: If required CSV files are not found.
    """
    telemetry = load_csv_to_dict(run_dir / "telemetry.csv")
    commands = load_csv_to_dict(run_dir / "commands.csv")
    solver = load_csv_to_dict(run_dir / "solver.csv")
    statuses = load_column_strings(run_dir / "commands.csv", "status")

    plot_trajectory(telemetry, save_path=run_dir / "trajectory.png" if save_plots else None)
    plot_control_summary(
        solver,
        commands,
        statuses,
        save_path=run_dir / "control_summary.png" if save_plots else None,
    )

    if show_plots:
        plt.show()
    else:
        plt.close("all")
