"""Closest obstacle follower.

This module runs one control cycle per incoming scan:
- Finds the closest valid return in the scan
- Crops the scan to a window around it and locates the point in the window
- Converts the point to a pose and transforms it into the robot body frame
- Steers toward it with a proportional law
- Builds a visualization marker for it

Failures are reported in the CycleResult instead of raised. On any failure
the previous command is held unchanged.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from .config import (
    BASE_FRAME,
    CONTROLLER_KP,
    MARKER_COLOR_RGBA,
    MARKER_FRAME,
    MARKER_ID,
    SCAN_FRAME,
    TRANSFORM_TIMEOUT_SECONDS,
    WINDOW_RANGE_SIZE,
)
from .controller import ProportionalController, heading_error
from .marker import create_marker
from .messages import ClosestPoint, Marker, Pose, RangeScan, VelocityCommand
from .scan import create_scan_around_closest, get_minimal_distance, obstacle_pose
from .transform import PoseTransformer, TransformProvider

NO_DETECTION_FAILURE = "no_detection"
INVALID_WINDOW_FAILURE = "invalid_window"
TRANSFORM_FAILURE = "transform_unavailable"


def hold_command(cmd: VelocityCommand) -> VelocityCommand:
    """Return an independent copy of ``cmd``."""
    return VelocityCommand(linear=replace(cmd.linear), angular=replace(cmd.angular))


@dataclass
class CycleResult:
    """Everything one control cycle produced.

    Attributes:
        command: Velocity command to send. Equal to the previous command when
            the cycle failed.
        closest: Closest point in the full scan (NO_DETECTION if none).
        window: Scan cropped around the closest point, if extracted.
        scan_pose: Obstacle pose in the scan frame.
        base_pose: Obstacle pose in the robot body frame.
        angle_error: Heading error fed to the controller (radians).
        marker: Marker for the obstacle, whenever one was detected.
        failure: None on success, otherwise one of NO_DETECTION_FAILURE,
            INVALID_WINDOW_FAILURE or TRANSFORM_FAILURE.
    """

    command: VelocityCommand
    closest: ClosestPoint
    window: Optional[RangeScan] = None
    scan_pose: Optional[Pose] = None
    base_pose: Optional[Pose] = None
    angle_error: Optional[float] = None
    marker: Optional[Marker] = None
    failure: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class ObstacleFollower:
    """Steers the robot toward the closest obstacle in each laser scan.

    Attributes:
        controller: Proportional steering controller.
        transformer: Pose transformer backed by the injected provider.
        range_size: Half-width of the scan window (readings).
        scan_frame: Frame assumed for scans that arrive without a frame_id.
        base_frame: Robot body frame the heading error is computed in.
        marker_frame: Frame the marker is expressed in when reachable.
        marker_id: Id of the obstacle marker.
        marker_color: Marker color as (r, g, b, a).
        use_window: If False, skip the window step and use the full scan.
    """

    def __init__(
        self,
        transform_provider: TransformProvider,
        kp: float = CONTROLLER_KP,
        range_size: int = WINDOW_RANGE_SIZE,
        scan_frame: str = SCAN_FRAME,
        base_frame: str = BASE_FRAME,
        marker_frame: str = MARKER_FRAME,
        marker_id: int = MARKER_ID,
        marker_color: Sequence[float] = MARKER_COLOR_RGBA,
        use_window: bool = True,
        transform_timeout: float = TRANSFORM_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the follower.

        Args:
            transform_provider: Source of frame transforms (e.g. TransformBuffer).
            kp: Proportional gain. Must be positive.
            range_size: Window half-width in readings. Must be positive.
            scan_frame: Fallback frame for scans without a frame_id.
            base_frame: Robot body frame.
            marker_frame: Preferred marker frame.
            marker_id: Marker id.
            marker_color: Marker color as (r, g, b, a).
            use_window: Whether to crop the scan around the closest point.
            transform_timeout: Lookup timeout per transform (seconds).

        Raises:
            ValueError: If kp or range_size is not positive.
        """
        if range_size <= 0:
            raise ValueError(f"Window range size must be positive, got {range_size}")

        self.controller = ProportionalController(kp)
        self.transformer = PoseTransformer(transform_provider, timeout=transform_timeout)
        self.range_size = range_size
        self.scan_frame = scan_frame
        self.base_frame = base_frame
        self.marker_frame = marker_frame
        self.marker_id = marker_id
        self.marker_color = tuple(marker_color)
        self.use_window = use_window

    def locate_obstacle(
        self, scan: RangeScan
    ) -> Tuple[ClosestPoint, Optional[RangeScan], Optional[Pose], Optional[str]]:
        """Find the closest obstacle and its pose in the scan frame.

        Args:
            scan: Incoming laser scan.

        Returns:
            Tuple of (closest, window, scan_pose, failure). ``failure`` is None
            when a pose was produced.
        """
        closest = get_minimal_distance(scan)
        if not closest.detected:
            return closest, None, None, NO_DETECTION_FAILURE

        source = scan
        point = closest
        window = None
        if self.use_window:
            window, ok = create_scan_around_closest(
                scan, closest.index, closest.distance, self.range_size
            )
            if not ok:
                return closest, None, None, INVALID_WINDOW_FAILURE
            # Same reading, re-indexed relative to the window
            source = window
            point = get_minimal_distance(window)

        pose = obstacle_pose(source, point)
        pose.frame_id = scan.frame_id or self.scan_frame
        return closest, window, pose, None

    def build_marker(self, scan_pose: Pose) -> Marker:
        """Marker for the obstacle, in ``marker_frame`` if reachable, else the scan frame."""
        # Marker frame may not be published; fall back without a warning
        marker_pose, ok = self.transformer.transform_pose(
            scan_pose, scan_pose.frame_id, self.marker_frame, warn=False
        )
        if not ok:
            marker_pose = scan_pose
        return create_marker(
            marker_pose.position.x,
            marker_pose.position.y,
            marker_pose.frame_id,
            self.marker_id,
            self.marker_color,
        )

    def process_scan(self, scan: RangeScan, old_cmd: VelocityCommand) -> CycleResult:
        """Run one control cycle.

        Args:
            scan: Incoming laser scan.
            old_cmd: Command sent in the previous cycle.

        Returns:
            CycleResult with the new command and every intermediate product.
        """
        closest, window, scan_pose, failure = self.locate_obstacle(scan)
        if failure is not None:
            logging.debug(f"Cycle failed before transform: {failure}")
            return CycleResult(
                command=hold_command(old_cmd), closest=closest, window=window, failure=failure
            )

        marker = self.build_marker(scan_pose)

        base_pose, ok = self.transformer.transform_pose(
            scan_pose, scan_pose.frame_id, self.base_frame
        )
        if not ok:
            return CycleResult(
                command=hold_command(old_cmd),
                closest=closest,
                window=window,
                scan_pose=scan_pose,
                marker=marker,
                failure=TRANSFORM_FAILURE,
            )

        angle_error = heading_error(base_pose)
        command = self.controller.compute_control(old_cmd, angle_error)

        logging.debug(
            f"Closest {closest.distance:.3f} m at index {closest.index}, "
            f"error {angle_error:+.3f} rad -> omega {command.angular.z:+.3f} rad/s"
        )

        return CycleResult(
            command=command,
            closest=closest,
            window=window,
            scan_pose=scan_pose,
            base_pose=base_pose,
            angle_error=angle_error,
            marker=marker,
        )
