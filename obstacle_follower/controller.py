"""Proportional steering controller.

This module turns the heading error toward the closest obstacle into an
angular velocity command. Linear velocity is never computed here: it is
carried through unchanged from the previous command.
"""

import math
from dataclasses import replace
from typing import Dict

from .messages import Pose, Vector3, VelocityCommand


def heading_error(pose: Pose) -> float:
    """Heading offset of a point in the robot body frame.

    Uses the REP-103 body frame (x forward, y left), so the result is positive
    when the point lies to the left of the robot and negative to the right.

    Args:
        pose: Obstacle pose expressed in the robot body frame.

    Returns:
        Signed angle in radians, in [-π, π].
    """
    return math.atan2(pose.position.y, pose.position.x)


def calculate_p_ratio(old_cmd: VelocityCommand, kp: float, angle_error: float) -> VelocityCommand:
    """Compute a new velocity command from a proportional steering law.

    Control law:
        new_cmd.angular.z = kp * angle_error
        new_cmd.linear = old_cmd.linear

    No clamping or saturation is applied; actuator limits are the caller's
    responsibility.

    Args:
        old_cmd: Previous velocity command. Its linear component and its
            angular x/y components are carried over.
        kp: Proportional gain (1/s).
        angle_error: Signed heading error (radians). Positive turns
            counter-clockwise, see ``heading_error``.

    Returns:
        New velocity command. ``old_cmd`` is not modified.

    Example:
        >>> cmd = calculate_p_ratio(VelocityCommand(), kp=2.0, angle_error=0.5)
        >>> cmd.angular.z
        1.0
    """
    return VelocityCommand(
        linear=replace(old_cmd.linear),
        angular=Vector3(old_cmd.angular.x, old_cmd.angular.y, kp * angle_error),
    )


class ProportionalController:
    """P controller steering the robot toward the closest obstacle.

    Attributes:
        kp: Proportional gain applied to the heading error (1/s).
    """

    def __init__(self, kp: float) -> None:
        """Initialize the controller.

        Args:
            kp: Proportional gain. Must be positive.

        Raises:
            ValueError: If kp is not positive.
        """
        if not kp > 0.0:
            raise ValueError(f"Proportional gain must be positive, got {kp}")
        self.kp = kp

    def compute_control(self, old_cmd: VelocityCommand, angle_error: float) -> VelocityCommand:
        """Apply the proportional law with this controller's gain."""
        return calculate_p_ratio(old_cmd, self.kp, angle_error)

    def get_diagnostics(
        self, old_cmd: VelocityCommand, angle_error: float, new_cmd: VelocityCommand
    ) -> Dict[str, float]:
        """Get diagnostic information for logging and debugging.

        Args:
            old_cmd: Command the cycle started from.
            angle_error: Heading error fed to the controller (radians).
            new_cmd: Command the controller produced.

        Returns:
            Dictionary containing all diagnostic values
        """
        return {
            "kp": self.kp,
            "angle_error": angle_error,
            "omega_prev": old_cmd.angular.z,
            "omega_cmd": new_cmd.angular.z,
            "v_cmd": new_cmd.linear.x,
        }
