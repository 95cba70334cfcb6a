"""
Visualization utilities for obstacle follower runs.

This module provides functions to plot a laser scan with its cropped window
and obstacle marker, to plot the control history recorded by the
DataCollector, and to summarize a whole run directory.
"""

import csv
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from .config import (
    PLOT_BLUE,
    PLOT_CREAM,
    PLOT_DARK_BLUE,
    PLOT_ORANGE,
    PLOT_TAUPE,
    PLOT_YELLOW_ORANGE,
)
from .messages import Marker, RangeScan
from .scan import valid_mask


# ============================================================================
# Data Helpers
# ============================================================================


def scan_to_points(scan: RangeScan) -> Tuple[np.ndarray, np.ndarray]:
    """Convert the valid readings of a scan to cartesian points in the scan frame.

    Args:
        scan: Laser scan.

    Returns:
        Tuple of (x, y) arrays in meters, one entry per valid reading.
    """
    ranges = np.asarray(scan.ranges, dtype=float)
    angles = scan.angle_min + np.arange(len(ranges)) * scan.angle_increment
    mask = valid_mask(scan)
    return ranges[mask] * np.cos(angles[mask]), ranges[mask] * np.sin(angles[mask])


def load_csv_to_dict(csv_path: Path) -> Dict[str, np.ndarray]:
    """Load CSV file into dictionary of numpy arrays.

    Automatically converts numeric values to floats. Non-numeric values
    become NaN.

    Args:
        csv_path: Path to CSV file.

    Returns:
        Dictionary mapping column names to numpy arrays.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        data: Dict[str, List[float]] = {name: [] for name in reader.fieldnames or []}
        for row in reader:
            for key, value in row.items():
                try:
                    data[key].append(float(value))
                except (ValueError, TypeError):
                    data[key].append(np.nan)

    return {key: np.array(values) for key, values in data.items()}


def load_scan_csv(csv_path: Path) -> RangeScan:
    """Rebuild a scan from a ``last_scan.csv`` written by DataCollector.

    Readings flagged invalid are restored as NaN, so the rebuilt scan keeps
    only the returns that were valid when the scan was recorded.

    Args:
        csv_path: Path to the scan CSV.

    Returns:
        RangeScan with the recorded angles and ranges.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
    """
    data = load_csv_to_dict(Path(csv_path))
    angles = data["angle"]
    ranges = np.where(data["valid"] == 1.0, data["range"], np.nan)

    angle_min = float(angles[0]) if len(angles) > 0 else 0.0
    angle_increment = float(angles[1] - angles[0]) if len(angles) > 1 else 0.0

    return RangeScan(
        ranges=ranges.tolist(),
        angle_min=angle_min,
        angle_max=float(angles[-1]) if len(angles) > 0 else 0.0,
        angle_increment=angle_increment,
        range_min=0.0,
        range_max=float("inf"),
    )


# ============================================================================
# Plot Styling
# ============================================================================


def style_axis(
    ax: Axes,
    title: str = "",
    xlabel: str = "",
    ylabel: str = "",
    grid: bool = True,
    dark_mode: bool = False,
) -> None:
    """Apply consistent styling to a matplotlib axis.

    Args:
        ax: Matplotlib axis to style.
        title: Plot title (optional).
        xlabel: X-axis label (optional).
        ylabel: Y-axis label (optional).
        grid: Whether to show grid lines (default: True).
        dark_mode: Whether to use dark mode styling (default: False).
    """
    text_kwargs = {"color": PLOT_CREAM} if dark_mode else {}

    if title:
        ax.set_title(title, fontweight="bold", **text_kwargs)
    if xlabel:
        ax.set_xlabel(xlabel, **text_kwargs)
    if ylabel:
        ax.set_ylabel(ylabel, **text_kwargs)

    if grid:
        ax.grid(True, alpha=0.3, linestyle="--", linewidth=0.5)

    if dark_mode:
        ax.set_facecolor(PLOT_DARK_BLUE)
        ax.tick_params(colors=PLOT_CREAM)
        for spine in ax.spines.values():
            spine.set_edgecolor(PLOT_TAUPE)


# ============================================================================
# Plots
# ============================================================================


def plot_scan(
    scan: RangeScan,
    window: Optional[RangeScan] = None,
    marker: Optional[Marker] = None,
    title: str = "Laser Scan",
    save_path: Optional[Path] = None,
    dark_mode: bool = True,
) -> Figure:
    """Plot a laser scan in the scan frame, top-down.

    Args:
        scan: Full laser scan.
        window: Scan cropped around the closest point (optional), drawn on top.
        marker: Obstacle marker (optional). Only drawn when it is expressed in
            the scan's frame, since the plot has no transform information.
        title: Plot title.
        save_path: Optional path to save the figure.
        dark_mode: Whether to use dark mode styling (default: True).

    Returns:
        Matplotlib figure object.
    """
    if dark_mode:
        fig, ax = plt.subplots(figsize=(8, 8), facecolor=PLOT_DARK_BLUE)
    else:
        fig, ax = plt.subplots(figsize=(8, 8))

    x, y = scan_to_points(scan)
    ax.scatter(x, y, s=6, color=PLOT_ORANGE, alpha=0.7, label="Scan", zorder=2)

    if window is not None:
        wx, wy = scan_to_points(window)
        ax.scatter(wx, wy, s=14, color=PLOT_BLUE, label="Window", zorder=3)

    if marker is not None and marker.frame_id == scan.frame_id:
        ax.plot(
            marker.position.x,
            marker.position.y,
            "o",
            color=PLOT_YELLOW_ORANGE,
            markersize=12,
            markeredgecolor="black",
            label="Closest obstacle",
            zorder=4,
        )

    # Robot at the scan origin, facing +x
    ax.plot(0.0, 0.0, marker=">", color=PLOT_CREAM if dark_mode else "black", markersize=10)

    ax.set_aspect("equal", adjustable="datalim")
    frame = scan.frame_id or "scan frame"
    style_axis(ax, title=title, xlabel=f"x [{frame}] (m)", ylabel=f"y [{frame}] (m)", dark_mode=dark_mode)
    ax.legend(loc="upper right", framealpha=0.9, edgecolor=PLOT_TAUPE)

    if save_path is not None:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_cycle_history(csv_path: Path, save_path: Optional[Path] = None) -> Figure:
    """Plot closest distance, heading error and steering command over time.

    Args:
        csv_path: Path to a ``cycles.csv`` written by DataCollector.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
    """
    data = load_csv_to_dict(Path(csv_path))
    t = data["timestamp"]
    if len(t) > 0:
        t = t - t[0]

    fig, axes = plt.subplots(3, 1, figsize=(10, 8), sharex=True)

    axes[0].plot(t, data["distance"], color=PLOT_ORANGE, linewidth=1.5)
    style_axis(axes[0], title="Closest Obstacle", ylabel="Distance (m)")

    axes[1].plot(t, data["angle_error"], color=PLOT_ORANGE, linewidth=1.5)
    axes[1].axhline(0.0, color=PLOT_TAUPE, linewidth=0.8)
    style_axis(axes[1], title="Heading Error", ylabel="Error (rad)")

    axes[2].plot(t, data["omega_cmd"], color=PLOT_BLUE, linewidth=1.5, label="ω cmd")
    axes[2].plot(t, data["v_cmd"], color=PLOT_TAUPE, linewidth=1.0, label="v cmd")
    style_axis(axes[2], title="Commands", xlabel="Time (s)", ylabel="rad/s, m/s")
    axes[2].legend(loc="upper right")

    fig.tight_layout()

    if save_path is not None:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_run_summary(
    run_dir: Path, save_plots: bool = False, show_plots: bool = True
) -> Dict[str, Figure]:
    """Generate summary plots for a complete run.

    Args:
        run_dir: Directory containing cycles.csv and, optionally, last_scan.csv.
        save_plots: If True, save plots to run directory.
        show_plots: If True, display plots interactively.

    Returns:
        Figures by name ("cycle_history", and "last_scan" when a scan was saved).

    Raises:
        FileNotFoundError: If cycles.csv is not found.
    """
    run_dir = Path(run_dir)
    figures: Dict[str, Figure] = {}

    figures["cycle_history"] = plot_cycle_history(
        run_dir / "cycles.csv",
        save_path=run_dir / "cycle_history.png" if save_plots else None,
    )

    # The scan file only exists once at least one scan was processed
    scan_path = run_dir / "last_scan.csv"
    if scan_path.exists():
        figures["last_scan"] = plot_scan(
            load_scan_csv(scan_path),
            title=f"Last Scan - {run_dir.name}",
            save_path=run_dir / "last_scan.png" if save_plots else None,
        )

    if show_plots:
        plt.show()

    return figures
