"""Coordinate frame transforms for obstacle poses.

This module provides:
- Rigid-body transform math on (x, y, z, w) quaternions using numpy
- The TransformProvider interface the control cycle queries
- The TransformError hierarchy providers raise on failed lookups
- PoseTransformer, which moves a pose between frames and reports failure
  through its result instead of raising

Convention: a TransformStamped with ``frame_id=A`` and ``child_frame_id=B``
maps points expressed in B into A. ``lookup_transform(target, source)``
returns such a transform with ``frame_id=target`` and ``child_frame_id=source``.
"""

import logging
import math
from typing import Optional, Protocol, Tuple

import numpy as np

from .config import TRANSFORM_TIMEOUT_SECONDS
from .messages import Pose, Quaternion, TransformStamped, Vector3


# ============================================================================
# Errors
# ============================================================================


class TransformError(Exception):
    """Base class for failed transform lookups."""


class FrameNotFoundError(TransformError):
    """A requested frame is unknown to the provider."""


class ConnectivityError(TransformError):
    """Both frames are known but no chain of transforms connects them."""


class ExtrapolationError(TransformError):
    """The requested time lies outside the cached history beyond tolerance."""


# ============================================================================
# Quaternion Math
# ============================================================================


def quaternion_to_array(q: Quaternion) -> np.ndarray:
    return np.array([q.x, q.y, q.z, q.w], dtype=float)


def array_to_quaternion(q: np.ndarray) -> Quaternion:
    return Quaternion(float(q[0]), float(q[1]), float(q[2]), float(q[3]))


def normalize_quaternion(q: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(q)
    if norm == 0.0:
        return np.array([0.0, 0.0, 0.0, 1.0])
    return q / norm


def quaternion_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product ``q1 * q2`` of two (x, y, z, w) quaternions."""
    x1, y1, z1, w1 = q1
    x2, y2, z2, w2 = q2
    return np.array(
        [
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        ]
    )


def quaternion_inverse(q: np.ndarray) -> np.ndarray:
    """Inverse of a quaternion (conjugate divided by squared norm)."""
    conjugate = np.array([-q[0], -q[1], -q[2], q[3]])
    return conjugate / np.dot(q, q)


def quaternion_matrix(q: np.ndarray) -> np.ndarray:
    """3×3 rotation matrix of a unit quaternion."""
    x, y, z, w = normalize_quaternion(q)
    return np.array(
        [
            [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - z * w), 2.0 * (x * z + y * w)],
            [2.0 * (x * y + z * w), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - x * w)],
            [2.0 * (x * z - y * w), 2.0 * (y * z + x * w), 1.0 - 2.0 * (x * x + y * y)],
        ]
    )


def quaternion_slerp(q0: np.ndarray, q1: np.ndarray, fraction: float) -> np.ndarray:
    """Spherical linear interpolation between two unit quaternions.

    Args:
        q0: Quaternion at fraction 0.
        q1: Quaternion at fraction 1.
        fraction: Interpolation parameter in [0, 1].

    Returns:
        Interpolated unit quaternion, taking the shorter arc.
    """
    q0 = normalize_quaternion(q0)
    q1 = normalize_quaternion(q1)
    dot = float(np.dot(q0, q1))

    # q and -q are the same rotation; flip to take the short way round
    if dot < 0.0:
        q1 = -q1
        dot = -dot

    if dot > 0.9995:
        return normalize_quaternion(q0 + fraction * (q1 - q0))

    theta = math.acos(dot)
    sin_theta = math.sin(theta)
    w0 = math.sin((1.0 - fraction) * theta) / sin_theta
    w1 = math.sin(fraction * theta) / sin_theta
    return w0 * q0 + w1 * q1


def quaternion_from_yaw(yaw: float) -> Quaternion:
    """Quaternion for a rotation of ``yaw`` radians about +z."""
    half = 0.5 * yaw
    return Quaternion(0.0, 0.0, math.sin(half), math.cos(half))


def yaw_from_quaternion(q: Quaternion) -> float:
    """Rotation about +z (radians, in [-π, π]) of a quaternion."""
    siny_cosp = 2.0 * (q.w * q.z + q.x * q.y)
    cosy_cosp = 1.0 - 2.0 * (q.y * q.y + q.z * q.z)
    return math.atan2(siny_cosp, cosy_cosp)


# ============================================================================
# Transform Math
# ============================================================================


def _translation(t: TransformStamped) -> np.ndarray:
    return np.array([t.translation.x, t.translation.y, t.translation.z], dtype=float)


def _to_vector3(v: np.ndarray) -> Vector3:
    return Vector3(float(v[0]), float(v[1]), float(v[2]))


def identity_transform(frame_id: str, stamp: float = 0.0) -> TransformStamped:
    return TransformStamped(frame_id=frame_id, child_frame_id=frame_id, stamp=stamp)


def compose_transforms(a: TransformStamped, b: TransformStamped) -> TransformStamped:
    """Chain two transforms: ``a`` maps B into A, ``b`` maps C into B.

    Returns:
        Transform mapping C into A. Its stamp is ``a.stamp``.
    """
    qa = quaternion_to_array(a.rotation)
    qb = quaternion_to_array(b.rotation)
    translation = _translation(a) + quaternion_matrix(qa) @ _translation(b)
    rotation = normalize_quaternion(quaternion_multiply(qa, qb))
    return TransformStamped(
        frame_id=a.frame_id,
        child_frame_id=b.child_frame_id,
        stamp=a.stamp,
        translation=_to_vector3(translation),
        rotation=array_to_quaternion(rotation),
    )


def invert_transform(t: TransformStamped) -> TransformStamped:
    """Inverse transform, mapping the parent frame back into the child frame."""
    q_inv = quaternion_inverse(normalize_quaternion(quaternion_to_array(t.rotation)))
    translation = -(quaternion_matrix(q_inv) @ _translation(t))
    return TransformStamped(
        frame_id=t.child_frame_id,
        child_frame_id=t.frame_id,
        stamp=t.stamp,
        translation=_to_vector3(translation),
        rotation=array_to_quaternion(q_inv),
    )


def interpolate_transforms(
    t0: TransformStamped, t1: TransformStamped, stamp: float
) -> TransformStamped:
    """Interpolate between two samples of the same frame pair.

    Translation is interpolated linearly and rotation with slerp. ``stamp``
    is expected to lie within ``[t0.stamp, t1.stamp]``.
    """
    span = t1.stamp - t0.stamp
    fraction = 0.0 if span <= 0.0 else (stamp - t0.stamp) / span
    translation = (1.0 - fraction) * _translation(t0) + fraction * _translation(t1)
    rotation = quaternion_slerp(
        quaternion_to_array(t0.rotation), quaternion_to_array(t1.rotation), fraction
    )
    return TransformStamped(
        frame_id=t0.frame_id,
        child_frame_id=t0.child_frame_id,
        stamp=stamp,
        translation=_to_vector3(translation),
        rotation=array_to_quaternion(rotation),
    )


def apply_to_pose(transform: TransformStamped, pose: Pose) -> Pose:
    """Express ``pose`` (given in the transform's child frame) in its parent frame."""
    q_t = quaternion_to_array(transform.rotation)
    position = np.array([pose.position.x, pose.position.y, pose.position.z], dtype=float)
    new_position = quaternion_matrix(q_t) @ position + _translation(transform)
    new_orientation = normalize_quaternion(
        quaternion_multiply(q_t, quaternion_to_array(pose.orientation))
    )
    return Pose(
        position=_to_vector3(new_position),
        orientation=array_to_quaternion(new_orientation),
        frame_id=transform.frame_id,
        stamp=pose.stamp,
    )


# ============================================================================
# Provider Interface and Pose Transformer
# ============================================================================


class TransformProvider(Protocol):
    """Anything that answers "transform from frame A to frame B at time T"."""

    def lookup_transform(
        self,
        target_frame: str,
        source_frame: str,
        time: Optional[float] = None,
        timeout: float = 0.0,
    ) -> TransformStamped:
        """Return the transform mapping ``source_frame`` points into ``target_frame``.

        ``time=None`` asks for the latest available transform. Raises a
        TransformError subclass when the lookup cannot be answered within
        ``timeout`` seconds.
        """
        ...


class PoseTransformer:
    """Moves poses between coordinate frames using an injected transform provider.

    The provider owns the transform cache and its update path; this class only
    issues point-in-time queries with a bounded timeout and turns provider
    errors into a failed result.

    Attributes:
        provider: Transform provider queried for each pose.
        timeout: Maximum time a single lookup may wait (seconds).
    """

    def __init__(
        self, provider: TransformProvider, timeout: float = TRANSFORM_TIMEOUT_SECONDS
    ) -> None:
        """Initialize the pose transformer.

        Args:
            provider: Transform provider (e.g. a TransformBuffer).
            timeout: Lookup timeout in seconds. Must be non-negative.

        Raises:
            ValueError: If timeout is negative.
        """
        if timeout < 0.0:
            raise ValueError(f"Transform timeout must be non-negative, got {timeout}")
        self.provider = provider
        self.timeout = timeout

    def transform_pose(
        self, src_pose: Pose, src_frame: str, dest_frame: str, warn: bool = True
    ) -> Tuple[Optional[Pose], bool]:
        """Express ``src_pose`` in ``dest_frame``.

        The transform is looked up at ``src_pose.stamp``, or the latest
        available one when the pose has no stamp.

        Args:
            src_pose: Pose expressed in ``src_frame``.
            src_frame: Frame ``src_pose`` is expressed in.
            dest_frame: Frame to express the pose in.
            warn: Log a failed lookup at WARNING (True) or DEBUG (False).

        Returns:
            Tuple of (dest_pose, success). ``dest_pose`` is None when the
            frames are unknown, not connected, or the cached data is too old.
        """
        if src_pose.frame_id and src_pose.frame_id != src_frame:
            logging.debug(
                f"Pose tagged '{src_pose.frame_id}' transformed as '{src_frame}'"
            )

        try:
            transform = self.provider.lookup_transform(
                dest_frame, src_frame, time=src_pose.stamp, timeout=self.timeout
            )
        except TransformError as e:
            log = logging.warning if warn else logging.debug
            log(f"Transform {src_frame} -> {dest_frame} unavailable: {e}")
            return None, False

        return apply_to_pose(transform, src_pose), True
