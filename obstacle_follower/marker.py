"""Visualization marker for the detected obstacle."""

from dataclasses import replace
from typing import Sequence, Union

from .config import MARKER_Z
from .messages import ColorRGBA, Marker, Vector3


def create_marker(
    x: float,
    y: float,
    frame_id: str,
    marker_id: int,
    color: Union[ColorRGBA, Sequence[float]],
) -> Marker:
    """Build a marker for a point on the ground plane.

    Shape, scale, namespace and lifetime come from ``config``; the marker sits
    at height ``MARKER_Z``.

    Args:
        x: X position in ``frame_id`` (meters).
        y: Y position in ``frame_id`` (meters).
        frame_id: Frame the position is expressed in.
        marker_id: Marker id. Publishing the same id replaces the old marker.
        color: ColorRGBA or an (r, g, b, a) sequence with components in [0, 1].

    Returns:
        The marker.
    """
    if isinstance(color, ColorRGBA):
        color = replace(color)
    else:
        color = ColorRGBA.from_sequence(color)

    return Marker(
        position=Vector3(float(x), float(y), MARKER_Z),
        frame_id=frame_id,
        id=marker_id,
        color=color,
    )
