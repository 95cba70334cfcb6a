"""Tests for the proportional steering law."""

import math

import pytest

from obstacle_follower.controller import ProportionalController, calculate_p_ratio, heading_error
from obstacle_follower.messages import Pose, Vector3, VelocityCommand


def command(vx=0.0, vy=0.0, wz=0.0):
    return VelocityCommand(linear=Vector3(vx, vy, 0.0), angular=Vector3(0.0, 0.0, wz))


def test_example_gain_and_error():
    new_cmd = calculate_p_ratio(command(wz=0.0), kp=2.0, angle_error=0.5)

    assert new_cmd.angular.z == pytest.approx(1.0)


def test_linear_velocity_is_carried_over():
    old_cmd = command(vx=0.4, vy=-0.1, wz=3.0)

    new_cmd = calculate_p_ratio(old_cmd, kp=1.0, angle_error=-0.2)

    assert new_cmd.linear == old_cmd.linear
    assert new_cmd.linear is not old_cmd.linear
    assert new_cmd.angular.z == pytest.approx(-0.2)


def test_previous_angular_velocity_is_ignored():
    a = calculate_p_ratio(command(wz=-5.0), kp=1.5, angle_error=0.3)
    b = calculate_p_ratio(command(wz=7.0), kp=1.5, angle_error=0.3)

    assert a.angular.z == pytest.approx(b.angular.z)


@pytest.mark.parametrize("kp, error", [(0.5, 0.2), (1.0, -0.7), (3.0, 1.2)])
def test_linear_in_gain_and_error(kp, error):
    base = calculate_p_ratio(command(), kp, error).angular.z

    assert calculate_p_ratio(command(), 2 * kp, error).angular.z == pytest.approx(2 * base)
    assert calculate_p_ratio(command(), kp, 2 * error).angular.z == pytest.approx(2 * base)


def test_no_saturation():
    new_cmd = calculate_p_ratio(command(), kp=100.0, angle_error=math.pi)

    assert new_cmd.angular.z == pytest.approx(100.0 * math.pi)


def test_old_command_not_modified():
    old_cmd = command(vx=0.3, wz=0.1)

    calculate_p_ratio(old_cmd, kp=2.0, angle_error=1.0)

    assert old_cmd == command(vx=0.3, wz=0.1)


class TestHeadingError:
    def test_left_is_positive(self):
        assert heading_error(Pose(position=Vector3(1.0, 1.0, 0.0))) == pytest.approx(math.pi / 4)

    def test_right_is_negative(self):
        assert heading_error(Pose(position=Vector3(1.0, -1.0, 0.0))) == pytest.approx(-math.pi / 4)

    def test_straight_ahead_is_zero(self):
        assert heading_error(Pose(position=Vector3(2.0, 0.0, 0.0))) == 0.0

    def test_positive_error_turns_counter_clockwise(self):
        error = heading_error(Pose(position=Vector3(0.5, 0.5, 0.0)))

        assert calculate_p_ratio(command(), kp=1.0, angle_error=error).angular.z > 0.0


class TestProportionalController:
    def test_uses_configured_gain(self):
        controller = ProportionalController(kp=2.0)

        assert controller.compute_control(command(vx=0.2), 0.5).angular.z == pytest.approx(1.0)

    @pytest.mark.parametrize("kp", [0.0, -1.0, math.nan])
    def test_rejects_non_positive_gain(self, kp):
        with pytest.raises(ValueError):
            ProportionalController(kp=kp)

    def test_diagnostics(self):
        controller = ProportionalController(kp=2.0)
        old_cmd = command(vx=0.3, wz=0.05)
        new_cmd = controller.compute_control(old_cmd, 0.25)

        diagnostics = controller.get_diagnostics(old_cmd, 0.25, new_cmd)

        assert diagnostics == {
            "kp": 2.0,
            "angle_error": 0.25,
            "omega_prev": 0.05,
            "omega_cmd": pytest.approx(0.5),
            "v_cmd": 0.3,
        }
