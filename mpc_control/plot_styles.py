"""Shared plotting helpers for control run visualizations.

Provides the color scheme, CSV loading into numpy arrays and the common
dark-mode axis styling used by visualization.py.
"""

import csv
from pathlib import Path
from typing import Dict, List

import numpy as np
from matplotlib.axes import Axes

from .config import (
    MONUMENTAL_BLUE,
    MONUMENTAL_CREAM,
    MONUMENTAL_DARK_BLUE,
    MONUMENTAL_ORANGE,
    MONUMENTAL_TAUPE,
    MONUMENTAL_YELLOW_ORANGE,
)

__all__ = [
    "MONUMENTAL_ORANGE",
    "MONUMENTAL_BLUE",
    "MONUMENTAL_CREAM",
    "MONUMENTAL_TAUPE",
    "MONUMENTAL_YELLOW_ORANGE",
    "MONUMENTAL_DARK_BLUE",
    "load_csv_to_dict",
    "style_axis",
    "add_branded_legend",
]


def load_csv_to_dict(csv_path: Path) -> Dict[str, np.ndarray]:
    """Load a CSV file into a dictionary of numpy arrays.

    Numeric cells become floats. Empty or non-numeric cells (skipped cycles,
    status strings) become NaN; use load_column_strings for those columns.

    Args:
        csv_path: Path to CSV file.

    Returns:
        Dictionary mapping column names to numpy arrays.

    Raises:
        FileNotFoundError: If the CSV file does not exist.

    Example:
        >>> data = load_csv_to_dict(Path("results/run_20260101_120000/solver.csv"))
        >>> data["cte"].shape
        (250,)
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        data: Dict[str, List[float]] = {key: [] for key in reader.fieldnames or []}
        for row in reader:
            for key, value in row.items():
                try:
                    data[key].append(float(value))
                except (ValueError, TypeError):
                    data[key].append(np.nan)

    return {key: np.array(values) for key, values in data.items()}


def load_column_strings(csv_path: Path, column: str) -> List[str]:
    """Load one column of a CSV file as raw strings."""
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, newline="") as f:
        return [row[column] for row in csv.DictReader(f)]


def style_axis(
    ax: Axes,
    title: str = "",
    xlabel: str = "",
    ylabel: str = "",
    grid: bool = True,
    dark_mode: bool = True,
) -> None:
    """Apply consistent styling to a matplotlib axis.

    Args:
        ax: Matplotlib axis to style.
        title: Plot title (optional).
        xlabel: X-axis label (optional).
        ylabel: Y-axis label (optional).
        grid: Whether to show grid lines (default: True).
        dark_mode: Whether to use dark mode styling (default: True).
    """
    text_kwargs = {"color": MONUMENTAL_CREAM} if dark_mode else {}

    if title:
        ax.set_title(title, fontweight="bold", **text_kwargs)
    if xlabel:
        ax.set_xlabel(xlabel, **text_kwargs)
    if ylabel:
        ax.set_ylabel(ylabel, **text_kwargs)

    if grid:
        ax.grid(True, alpha=0.3, linestyle="--", linewidth=0.5)

    if dark_mode:
        ax.set_facecolor(MONUMENTAL_DARK_BLUE)
        ax.tick_params(colors=MONUMENTAL_CREAM, which="both")
        for spine in ax.spines.values():
            spine.set_edgecolor(MONUMENTAL_TAUPE)


def add_branded_legend(ax: Axes, loc: str = "best", dark_mode: bool = True, **kwargs) -> None:
    """Add a legend with the branded styling.

    Args:
        ax: Matplotlib axis to add legend to.
        loc: Legend location (default: "best").
        dark_mode: Whether to use dark mode styling (default: True).
        **kwargs: Additional keyword arguments passed to ax.legend().
    """
    legend_kwargs = {
        "loc": loc,
        "framealpha": 0.9,
        "edgecolor": MONUMENTAL_TAUPE,
    }

    if dark_mode:
        legend_kwargs["facecolor"] = MONUMENTAL_DARK_BLUE
        legend_kwargs["labelcolor"] = MONUMENTAL_CREAM

    # User kwargs take precedence
    legend_kwargs.update(kwargs)

    ax.legend(**legend_kwargs)
