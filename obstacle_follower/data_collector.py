"""Data collection and CSV logging for obstacle follower runs.

This module provides CSV data logging for:
- Control cycles (closest point, heading error, commands, failures)
- The most recent laser scan, for offline plotting
"""

import csv
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO

from .config import TERM_BLUE, TERM_RESET
from .follower import CycleResult
from .messages import RangeScan
from .scan import valid_mask

CYCLE_HEADERS = [
    "timestamp",
    "index",
    "distance",
    "window_size",
    "obstacle_x",
    "obstacle_y",
    "angle_error",
    "v_cmd",
    "omega_cmd",
    "failure",
]

SCAN_HEADERS = ["index", "angle", "range", "valid"]


class DataCollector:
    """Manages CSV file creation and logging for obstacle follower data.

    Attributes:
        run_dir: Directory path for this run's output files.
        cycle_csv_file: File handle for the control cycle CSV.
        cycle_output_path: Path of the control cycle CSV.
        scan_output_path: Path of the last-scan CSV (rewritten on every save).
    """

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        # Validate output directory
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        # CSV file handles
        self.cycle_csv_file: Optional[TextIO] = None
        self.cycle_csv_writer: Any = None

        # Determine run directory
        if run_dir:
            # Use provided run directory
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            # Use environment variable (set by wrapper scripts)
            self.run_dir = Path(env_run_dir)
        else:
            # Create timestamped directory: results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        # Create directory structure
        self.run_dir.mkdir(parents=True, exist_ok=True)

        # Define output file paths
        self.cycle_output_path: Path = self.run_dir / "cycles.csv"
        self.scan_output_path: Path = self.run_dir / "last_scan.csv"

    def setup(self) -> None:
        """Create the cycle CSV and write its header. Must be called before logging."""
        self.cycle_csv_file = open(self.cycle_output_path, "w", newline="")
        self.cycle_csv_writer = csv.writer(self.cycle_csv_file)
        self.cycle_csv_writer.writerow(CYCLE_HEADERS)
        self.cycle_csv_file.flush()

        logging.info(f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}{TERM_RESET}")

    def log_cycle(self, timestamp: float, result: CycleResult) -> None:
        """Log one control cycle to CSV.

        Missing values (no detection, failed transform) are written as empty cells.

        Args:
            timestamp: Cycle time (seconds).
            result: Result of ObstacleFollower.process_scan.
        """
        closest = result.closest
        base_pose = result.base_pose

        # Obstacle position is in the base frame, empty when the transform failed
        self.cycle_csv_writer.writerow(
            [
                timestamp,
                closest.index if closest.detected else "",
                closest.distance if closest.detected else "",
                len(result.window) if result.window is not None else "",
                base_pose.position.x if base_pose is not None else "",
                base_pose.position.y if base_pose is not None else "",
                result.angle_error if result.angle_error is not None else "",
                result.command.linear.x,
                result.command.angular.z,
                result.failure or "",
            ]
        )
        if self.cycle_csv_file:
            self.cycle_csv_file.flush()

    def save_scan(self, scan: RangeScan) -> None:
        """Overwrite the last-scan CSV with ``scan``.

        Args:
            scan: Scan to save. Invalid readings are written as-is (nan/inf)
                with valid=0.
        """
        mask = valid_mask(scan)

        with open(self.scan_output_path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(SCAN_HEADERS)
            for i, r in enumerate(scan.ranges):
                writer.writerow([i, scan.angle_at(i), r, int(mask[i])])

    def cleanup(self) -> None:
        """Close the CSV file and log the output location."""
        if self.cycle_csv_file:
            self.cycle_csv_file.close()
            self.cycle_csv_file = None

        logging.info(f"{TERM_BLUE}✓ Saved run data to {self.run_dir}{TERM_RESET}")

    def __enter__(self) -> "DataCollector":
        """Context manager entry point.

        Returns:
            Self reference for use in with statement.
        """
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit point - ensures cleanup is called.

        Args:
            exc_type: Exception type if an exception occurred.
            exc_val: Exception value if an exception occurred.
            exc_tb: Exception traceback if an exception occurred.
        """
        self.cleanup()
