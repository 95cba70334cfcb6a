"""Shared fixtures for obstacle follower tests."""

import math
from typing import Dict, Optional, Tuple

import matplotlib
import pytest

matplotlib.use("Agg")

from obstacle_follower.messages import RangeScan, TransformStamped, Vector3  # noqa: E402
from obstacle_follower.transform import (  # noqa: E402
    FrameNotFoundError,
    identity_transform,
    invert_transform,
    quaternion_from_yaw,
)


class FakeTransformProvider:
    """Transform provider answering from a fixed table of frame pairs.

    Registering A -> B also answers B -> A with the inverse.
    """

    def __init__(self) -> None:
        self.transforms: Dict[Tuple[str, str], TransformStamped] = {}
        self.calls = []

    def add(self, transform: TransformStamped) -> None:
        self.transforms[(transform.frame_id, transform.child_frame_id)] = transform
        inverse = invert_transform(transform)
        self.transforms[(inverse.frame_id, inverse.child_frame_id)] = inverse

    def lookup_transform(
        self,
        target_frame: str,
        source_frame: str,
        time: Optional[float] = None,
        timeout: float = 0.0,
    ) -> TransformStamped:
        self.calls.append((target_frame, source_frame, time, timeout))
        if target_frame == source_frame:
            return identity_transform(target_frame)
        try:
            return self.transforms[(target_frame, source_frame)]
        except KeyError:
            raise FrameNotFoundError(f"No transform {source_frame} -> {target_frame}") from None


def make_transform(
    parent: str, child: str, x: float = 0.0, y: float = 0.0, yaw: float = 0.0, stamp: float = 0.0
) -> TransformStamped:
    return TransformStamped(
        frame_id=parent,
        child_frame_id=child,
        stamp=stamp,
        translation=Vector3(x, y, 0.0),
        rotation=quaternion_from_yaw(yaw),
    )


def make_scan(ranges, angle_min=-math.pi / 2, angle_increment=math.pi / 4, range_min=0.1,
              range_max=10.0, frame_id="base_laser", stamp=None) -> RangeScan:
    return RangeScan(
        ranges=list(ranges),
        angle_min=angle_min,
        angle_max=angle_min + (len(ranges) - 1) * angle_increment,
        angle_increment=angle_increment,
        range_min=range_min,
        range_max=range_max,
        frame_id=frame_id,
        stamp=stamp,
    )


@pytest.fixture
def fake_provider():
    provider = FakeTransformProvider()
    # Laser mounted 0.2 m ahead of the base, facing forward
    provider.add(make_transform("base_link", "base_laser", x=0.2))
    return provider
