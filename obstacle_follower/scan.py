"""Range scan analysis for closest obstacle detection.

This module provides the two scan-level steps of the control cycle:
- Finding the closest valid return in a scan
- Cropping the scan to a window of readings around that return

It also converts the closest return into a pose in the scan frame so it can be
handed to the pose transformer.
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from .messages import NO_DETECTION, ClosestPoint, Pose, RangeScan, Vector3


def valid_mask(scan: RangeScan) -> np.ndarray:
    """Return a boolean mask of the readings that count as obstacle returns.

    A reading is valid when it is finite and lies within
    ``[scan.range_min, scan.range_max]``.

    Args:
        scan: Range scan to inspect.

    Returns:
        Boolean array with one entry per reading.
    """
    ranges = np.asarray(scan.ranges, dtype=float)
    with np.errstate(invalid="ignore"):
        return np.isfinite(ranges) & (ranges >= scan.range_min) & (ranges <= scan.range_max)


def get_minimal_distance(scan: RangeScan) -> ClosestPoint:
    """Find the closest valid reading in a range scan.

    Invalid readings (NaN, inf, or outside the sensor's valid range) are
    ignored. When several readings share the minimum distance, the one with
    the lowest index wins.

    Args:
        scan: Range scan to search.

    Returns:
        ClosestPoint with the index and distance of the nearest valid reading,
        or ``NO_DETECTION`` if the scan holds no valid reading.

    Example:
        >>> scan = RangeScan([5.0, 0.3, 0.3, 4.0], 0.0, 0.3, 0.1, 0.1, 10.0)
        >>> get_minimal_distance(scan)
        ClosestPoint(index=1, distance=0.3)
    """
    mask = valid_mask(scan)
    if not mask.any():
        return NO_DETECTION

    # argmin returns the first occurrence of the minimum
    candidates = np.where(mask, np.asarray(scan.ranges, dtype=float), np.inf)
    index = int(np.argmin(candidates))
    return ClosestPoint(index=index, distance=float(candidates[index]))


def create_scan_around_closest(
    old_scan: RangeScan, closest_index: int, min_val: float, range_size: int
) -> Tuple[Optional[RangeScan], bool]:
    """Create a new scan holding only the readings around the closest point.

    The window spans ``[closest_index - range_size, closest_index + range_size]``
    clamped to the bounds of ``old_scan``. ``angle_min`` and ``angle_max`` are
    recomputed for the clamped window so that reading ``i`` of the new scan is
    still at ``angle_min + i * angle_increment``.

    Args:
        old_scan: Scan to crop.
        closest_index: Index of the closest point in ``old_scan``.
        min_val: Distance found at ``closest_index``.
        range_size: Number of readings kept on each side of the closest point.

    Returns:
        Tuple of (new_scan, success). ``new_scan`` is None when success is False,
        which happens for an out-of-range index, a non-positive range size, or
        an empty window.
    """
    n = len(old_scan.ranges)

    if closest_index < 0 or closest_index >= n:
        logging.debug(f"Window index {closest_index} outside scan of {n} readings")
        return None, False

    if range_size <= 0:
        logging.debug(f"Window range size must be positive, got {range_size}")
        return None, False

    start = max(closest_index - range_size, 0)
    end = min(closest_index + range_size, n - 1)
    if end < start:
        return None, False

    reading = old_scan.ranges[closest_index]
    if not math.isclose(reading, min_val, rel_tol=1e-9, abs_tol=1e-9):
        logging.debug(
            f"Window centre reading {reading:.3f} m differs from minimum {min_val:.3f} m"
        )

    intensities = old_scan.intensities[start : end + 1] if len(old_scan.intensities) == n else []

    new_scan = RangeScan(
        ranges=list(old_scan.ranges[start : end + 1]),
        angle_min=old_scan.angle_at(start),
        angle_max=old_scan.angle_at(end),
        angle_increment=old_scan.angle_increment,
        range_min=old_scan.range_min,
        range_max=old_scan.range_max,
        intensities=list(intensities),
        time_increment=old_scan.time_increment,
        scan_time=old_scan.scan_time,
        frame_id=old_scan.frame_id,
        stamp=old_scan.stamp,
    )
    return new_scan, True


def obstacle_pose(scan: RangeScan, closest: ClosestPoint) -> Pose:
    """Convert a closest point into a pose in the scan frame.

    Args:
        scan: Scan the closest point was found in.
        closest: Detected closest point (must be detected).

    Returns:
        Pose at (d cos a, d sin a, 0) with identity orientation, tagged with the
        scan's frame and stamp.
    """
    angle = scan.angle_at(closest.index)
    return Pose(
        position=Vector3(
            closest.distance * math.cos(angle), closest.distance * math.sin(angle), 0.0
        ),
        frame_id=scan.frame_id,
        stamp=scan.stamp,
    )
