"""Message types exchanged by the obstacle follower.

Plain dataclasses mirroring the robot's sensor, geometry and visualization
messages. Every message converts to and from a JSON-friendly dictionary so the
WebSocket client can ship it without extra schema code.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .config import MARKER_LIFETIME, MARKER_NAMESPACE, MARKER_SCALE, MARKER_TYPE


def _float_or_nan(value: Any) -> float:
    # JSON has no NaN/inf literal in strict mode; bridges send null instead
    return math.nan if value is None else float(value)


@dataclass
class Vector3:
    """3-D vector used for positions, translations and velocities."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vector3":
        return cls(float(data.get("x", 0.0)), float(data.get("y", 0.0)), float(data.get("z", 0.0)))


@dataclass
class Quaternion:
    """Rotation quaternion in (x, y, z, w) order. Defaults to identity."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z, "w": self.w}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quaternion":
        return cls(
            float(data.get("x", 0.0)),
            float(data.get("y", 0.0)),
            float(data.get("z", 0.0)),
            float(data.get("w", 1.0)),
        )


@dataclass
class RangeScan:
    """A single sweep of range readings at evenly spaced angles.

    Reading ``i`` was taken at ``angle_min + i * angle_increment``. Readings
    outside ``[range_min, range_max]`` or not finite are invalid returns.

    Attributes:
        ranges: Range readings in meters (NaN/inf for no return).
        angle_min: Angle of the first reading (radians).
        angle_max: Angle of the last reading (radians).
        angle_increment: Angular distance between readings (radians).
        range_min: Minimum valid range (meters).
        range_max: Maximum valid range (meters).
        intensities: Optional per-reading intensities (empty if unavailable).
        time_increment: Time between readings (seconds).
        scan_time: Time between scans (seconds).
        frame_id: Frame the scan is expressed in.
        stamp: Acquisition time of the first reading (seconds), if known.
    """

    ranges: List[float]
    angle_min: float
    angle_max: float
    angle_increment: float
    range_min: float
    range_max: float
    intensities: List[float] = field(default_factory=list)
    time_increment: float = 0.0
    scan_time: float = 0.0
    frame_id: str = ""
    stamp: Optional[float] = None

    def __len__(self) -> int:
        return len(self.ranges)

    def angle_at(self, index: int) -> float:
        """Return the beam angle of reading ``index`` (radians)."""
        return self.angle_min + index * self.angle_increment

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ranges": [r if math.isfinite(r) else None for r in self.ranges],
            "angle_min": self.angle_min,
            "angle_max": self.angle_max,
            "angle_increment": self.angle_increment,
            "range_min": self.range_min,
            "range_max": self.range_max,
            "intensities": list(self.intensities),
            "time_increment": self.time_increment,
            "scan_time": self.scan_time,
            "frame_id": self.frame_id,
            "stamp": self.stamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RangeScan":
        stamp = data.get("stamp")
        return cls(
            ranges=[_float_or_nan(r) for r in data["ranges"]],
            angle_min=float(data["angle_min"]),
            angle_max=float(data["angle_max"]),
            angle_increment=float(data["angle_increment"]),
            range_min=float(data["range_min"]),
            range_max=float(data["range_max"]),
            intensities=[float(i) for i in data.get("intensities", [])],
            time_increment=float(data.get("time_increment", 0.0)),
            scan_time=float(data.get("scan_time", 0.0)),
            frame_id=data.get("frame_id", ""),
            stamp=float(stamp) if stamp is not None else None,
        )


@dataclass(frozen=True)
class ClosestPoint:
    """Index and distance of the nearest valid reading in a scan.

    ``NO_DETECTION`` (index -1, distance +inf) stands for "no valid reading",
    which keeps it distinct from a genuine zero-distance return.
    """

    index: int
    distance: float

    @property
    def detected(self) -> bool:
        return self.index >= 0


NO_DETECTION = ClosestPoint(index=-1, distance=math.inf)


@dataclass
class VelocityCommand:
    """Linear and angular velocity command (m/s, rad/s) in the robot body frame."""

    linear: Vector3 = field(default_factory=Vector3)
    angular: Vector3 = field(default_factory=Vector3)

    def to_dict(self) -> Dict[str, Any]:
        return {"linear": self.linear.to_dict(), "angular": self.angular.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VelocityCommand":
        return cls(
            linear=Vector3.from_dict(data.get("linear", {})),
            angular=Vector3.from_dict(data.get("angular", {})),
        )


@dataclass
class Pose:
    """Position and orientation, tagged with the frame they are expressed in."""

    position: Vector3 = field(default_factory=Vector3)
    orientation: Quaternion = field(default_factory=Quaternion)
    frame_id: str = ""
    stamp: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position.to_dict(),
            "orientation": self.orientation.to_dict(),
            "frame_id": self.frame_id,
            "stamp": self.stamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pose":
        stamp = data.get("stamp")
        return cls(
            position=Vector3.from_dict(data.get("position", {})),
            orientation=Quaternion.from_dict(data.get("orientation", {})),
            frame_id=data.get("frame_id", ""),
            stamp=float(stamp) if stamp is not None else None,
        )


@dataclass
class TransformStamped:
    """Rigid-body transform from ``child_frame_id`` into ``frame_id`` at ``stamp``.

    A point ``p`` expressed in the child frame maps to ``R p + t`` in the
    parent frame, where ``R`` is ``rotation`` and ``t`` is ``translation``.
    """

    frame_id: str
    child_frame_id: str
    stamp: float = 0.0
    translation: Vector3 = field(default_factory=Vector3)
    rotation: Quaternion = field(default_factory=Quaternion)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frame_id": self.frame_id,
            "child_frame_id": self.child_frame_id,
            "stamp": self.stamp,
            "translation": self.translation.to_dict(),
            "rotation": self.rotation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransformStamped":
        return cls(
            frame_id=data["frame_id"],
            child_frame_id=data["child_frame_id"],
            stamp=float(data.get("stamp", 0.0)),
            translation=Vector3.from_dict(data.get("translation", {})),
            rotation=Quaternion.from_dict(data.get("rotation", {})),
        )


@dataclass
class ColorRGBA:
    """Color with components in [0, 1]."""

    r: float = 0.0
    g: float = 0.0
    b: float = 0.0
    a: float = 1.0

    @classmethod
    def from_sequence(cls, rgba: Sequence[float]) -> "ColorRGBA":
        return cls(*(float(c) for c in rgba))

    def to_dict(self) -> Dict[str, float]:
        return {"r": self.r, "g": self.g, "b": self.b, "a": self.a}


@dataclass
class Marker:
    """Visualization marker for a single point.

    Shape, scale, namespace and lifetime default to the fixed values in
    ``config``; only position, frame, id and color vary per marker.
    """

    position: Vector3
    frame_id: str
    id: int
    color: ColorRGBA
    namespace: str = MARKER_NAMESPACE
    type: str = MARKER_TYPE
    action: str = "add"
    scale: Vector3 = field(default_factory=lambda: Vector3(*MARKER_SCALE))
    lifetime: float = MARKER_LIFETIME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position.to_dict(),
            "frame_id": self.frame_id,
            "id": self.id,
            "color": self.color.to_dict(),
            "namespace": self.namespace,
            "type": self.type,
            "action": self.action,
            "scale": self.scale.to_dict(),
            "lifetime": self.lifetime,
        }
