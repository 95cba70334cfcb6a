"""Tests for the time-indexed transform cache."""

import math
import threading
import time

import pytest

from conftest import make_transform
from obstacle_follower.tf_buffer import TransformBuffer
from obstacle_follower.transform import (
    ConnectivityError,
    ExtrapolationError,
    FrameNotFoundError,
    yaw_from_quaternion,
)


@pytest.fixture
def robot_buffer():
    """map -> odom -> base_link -> base_laser, plus a wheel sibling of the laser."""
    buffer = TransformBuffer(cache_time=10.0, extrapolation_tolerance=0.1)
    buffer.set_transform(make_transform("map", "odom", x=1.0, stamp=0.0), is_static=True)
    buffer.set_transform(make_transform("odom", "base_link", x=2.0, yaw=math.pi / 2, stamp=1.0))
    buffer.set_transform(make_transform("odom", "base_link", x=2.0, yaw=math.pi / 2, stamp=2.0))
    buffer.set_transform(make_transform("base_link", "base_laser", x=0.2), is_static=True)
    buffer.set_transform(make_transform("base_link", "left_wheel", y=0.3), is_static=True)
    return buffer


class TestLookup:
    def test_direct_parent_lookup(self):
        buffer = TransformBuffer()
        buffer.set_transform(make_transform("odom", "base_link", x=1.0, stamp=0.0))

        forward = buffer.lookup_transform("odom", "base_link")
        backward = buffer.lookup_transform("base_link", "odom")

        assert forward.frame_id == "odom"
        assert forward.child_frame_id == "base_link"
        assert forward.translation.x == pytest.approx(1.0)
        assert backward.translation.x == pytest.approx(-1.0)

    def test_chain_through_several_frames(self, robot_buffer):
        result = robot_buffer.lookup_transform("map", "base_laser", 1.5)

        assert result.frame_id == "map"
        assert result.child_frame_id == "base_laser"
        assert result.stamp == 1.5
        assert result.translation.x == pytest.approx(3.0)
        assert result.translation.y == pytest.approx(0.2)
        assert yaw_from_quaternion(result.rotation) == pytest.approx(math.pi / 2)

    def test_between_siblings(self, robot_buffer):
        result = robot_buffer.lookup_transform("left_wheel", "base_laser", 1.5)

        assert result.translation.x == pytest.approx(0.2)
        assert result.translation.y == pytest.approx(-0.3)

    def test_same_frame_is_identity(self, robot_buffer):
        result = robot_buffer.lookup_transform("odom", "odom", 1.0)

        assert result.translation.x == 0.0
        assert result.rotation.w == 1.0

    def test_interpolates_between_samples(self):
        buffer = TransformBuffer()
        buffer.set_transform(make_transform("odom", "base_link", x=0.0, yaw=0.0, stamp=0.0))
        buffer.set_transform(make_transform("odom", "base_link", x=2.0, yaw=math.pi / 2, stamp=1.0))

        result = buffer.lookup_transform("odom", "base_link", 0.5)

        assert result.translation.x == pytest.approx(1.0)
        assert yaw_from_quaternion(result.rotation) == pytest.approx(math.pi / 4)

    def test_static_transform_valid_at_any_time(self):
        buffer = TransformBuffer()
        buffer.set_transform(make_transform("base_link", "base_laser", x=0.2, stamp=0.0), is_static=True)

        result = buffer.lookup_transform("base_link", "base_laser", 1000.0)

        assert result.translation.x == pytest.approx(0.2)
        assert result.stamp == 1000.0

    def test_latest_common_time(self):
        buffer = TransformBuffer()
        for stamp in range(6):
            buffer.set_transform(make_transform("map", "odom", x=float(stamp), stamp=float(stamp)))
        for stamp in range(4):
            buffer.set_transform(make_transform("odom", "base_link", y=float(stamp), stamp=float(stamp)))

        result = buffer.lookup_transform("map", "base_link")

        assert result.stamp == 3.0
        assert result.translation.x == pytest.approx(3.0)
        assert result.translation.y == pytest.approx(3.0)

    def test_replaces_sample_with_equal_stamp(self):
        buffer = TransformBuffer()
        buffer.set_transform(make_transform("odom", "base_link", x=1.0, stamp=2.0))
        buffer.set_transform(make_transform("odom", "base_link", x=5.0, stamp=2.0))

        assert buffer.lookup_transform("odom", "base_link", 2.0).translation.x == pytest.approx(5.0)

    def test_out_of_order_samples(self):
        buffer = TransformBuffer()
        buffer.set_transform(make_transform("odom", "base_link", x=2.0, stamp=2.0))
        buffer.set_transform(make_transform("odom", "base_link", x=0.0, stamp=0.0))

        assert buffer.lookup_transform("odom", "base_link", 1.0).translation.x == pytest.approx(1.0)


class TestLookupFailures:
    def test_unknown_frame(self, robot_buffer):
        with pytest.raises(FrameNotFoundError):
            robot_buffer.lookup_transform("map", "camera")

    def test_disconnected_trees(self, robot_buffer):
        robot_buffer.set_transform(make_transform("world", "drone", stamp=1.0))

        with pytest.raises(ConnectivityError):
            robot_buffer.lookup_transform("map", "drone", 1.0)

    def test_extrapolation_within_tolerance_is_clamped(self):
        buffer = TransformBuffer(extrapolation_tolerance=0.1)
        buffer.set_transform(make_transform("odom", "base_link", x=0.0, stamp=0.0))
        buffer.set_transform(make_transform("odom", "base_link", x=1.0, stamp=1.0))

        assert buffer.lookup_transform("odom", "base_link", 1.05).translation.x == pytest.approx(1.0)
        assert buffer.lookup_transform("odom", "base_link", -0.05).translation.x == pytest.approx(0.0)

    @pytest.mark.parametrize("stamp", [1.5, -0.5])
    def test_extrapolation_beyond_tolerance(self, stamp):
        buffer = TransformBuffer(extrapolation_tolerance=0.1)
        buffer.set_transform(make_transform("odom", "base_link", x=0.0, stamp=0.0))
        buffer.set_transform(make_transform("odom", "base_link", x=1.0, stamp=1.0))

        with pytest.raises(ExtrapolationError):
            buffer.lookup_transform("odom", "base_link", stamp)

    def test_cache_drops_old_samples(self):
        buffer = TransformBuffer(cache_time=1.0, extrapolation_tolerance=0.1)
        for stamp in (0.0, 0.5, 1.0, 1.5, 2.0):
            buffer.set_transform(make_transform("odom", "base_link", x=stamp, stamp=stamp))

        assert buffer.lookup_transform("odom", "base_link", 1.25).translation.x == pytest.approx(1.25)
        with pytest.raises(ExtrapolationError):
            buffer.lookup_transform("odom", "base_link", 0.5)

    def test_can_transform_does_not_raise(self, robot_buffer):
        assert robot_buffer.can_transform("map", "base_laser", 1.5)
        assert not robot_buffer.can_transform("map", "camera")
        assert not robot_buffer.can_transform("map", "base_laser", 50.0)


class TestWaiting:
    def test_timeout_expires(self):
        buffer = TransformBuffer()
        started = time.monotonic()

        with pytest.raises(FrameNotFoundError):
            buffer.lookup_transform("odom", "base_link", timeout=0.05)

        assert 0.04 <= time.monotonic() - started < 1.0

    def test_wakes_up_when_data_arrives(self):
        buffer = TransformBuffer()
        publisher = threading.Timer(
            0.05,
            buffer.set_transform,
            args=(make_transform("odom", "base_link", x=4.0, stamp=1.0),),
        )
        publisher.start()
        try:
            result = buffer.lookup_transform("odom", "base_link", timeout=2.0)
        finally:
            publisher.join()

        assert result.translation.x == pytest.approx(4.0)

    def test_concurrent_writers_and_readers(self):
        buffer = TransformBuffer(cache_time=100.0)
        buffer.set_transform(make_transform("odom", "base_link", stamp=0.0))
        errors = []

        def write():
            for i in range(1, 200):
                buffer.set_transform(make_transform("odom", "base_link", x=float(i), stamp=float(i)))

        def read():
            for _ in range(200):
                try:
                    result = buffer.lookup_transform("odom", "base_link")
                    # x always equals the stamp it was recorded at
                    if result.translation.x != pytest.approx(result.stamp):
                        errors.append(result)
                except Exception as e:  # noqa: BLE001
                    errors.append(e)

        threads = [threading.Thread(target=write)] + [threading.Thread(target=read) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []


class TestIngestion:
    @pytest.mark.parametrize(
        "parent, child",
        [("", "base_link"), ("odom", ""), ("  ", "base_link"), ("odom", "odom")],
    )
    def test_rejects_malformed_transforms(self, parent, child):
        buffer = TransformBuffer()

        assert not buffer.set_transform(make_transform(parent, child))
        assert buffer.all_frames() == []

    def test_all_frames(self, robot_buffer):
        assert robot_buffer.all_frames() == ["base_laser", "base_link", "left_wheel", "map", "odom"]

    def test_reparenting_replaces_history(self):
        buffer = TransformBuffer()
        buffer.set_transform(make_transform("odom", "base_link", x=1.0, stamp=0.0))
        buffer.set_transform(make_transform("map", "base_link", x=7.0, stamp=0.0))

        assert buffer.lookup_transform("map", "base_link", 0.0).translation.x == pytest.approx(7.0)
        with pytest.raises(FrameNotFoundError):
            buffer.lookup_transform("odom", "base_link", 0.0)

    def test_clear(self, robot_buffer):
        robot_buffer.clear()

        assert robot_buffer.all_frames() == []

    @pytest.mark.parametrize("kwargs", [{"cache_time": 0.0}, {"extrapolation_tolerance": -0.1}])
    def test_rejects_bad_settings(self, kwargs):
        with pytest.raises(ValueError):
            TransformBuffer(**kwargs)


def test_static_frame_turning_dynamic_drops_static_sample():
    buffer = TransformBuffer(extrapolation_tolerance=0.1)
    buffer.set_transform(make_transform("odom", "base_link", x=100.0, stamp=0.0), is_static=True)

    buffer.set_transform(make_transform("odom", "base_link", x=1.0, stamp=5.0))
    buffer.set_transform(make_transform("odom", "base_link", x=2.0, stamp=6.0))

    assert buffer.lookup_transform("odom", "base_link", 5.5).translation.x == pytest.approx(1.5)
    with pytest.raises(ExtrapolationError):
        buffer.lookup_transform("odom", "base_link", 2.0)
