import math

import pytest

from squatcore.joints import Joint, JointSet
from squatcore.scheduler import Scheduler, VirtualClock

LEG_LENGTH = 0.2
TORSO_LENGTH = 0.3


@pytest.fixture
def clock():
    return VirtualClock(1000.0)


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock)


@pytest.fixture
def tick(clock, scheduler):
    """Advance virtual time and fire whatever timers came due."""
    def _tick(seconds):
        clock.advance(seconds)
        return scheduler.run_due()
    return _tick


def _leg(knee, knee_angle, forward):
    """Hip and ankle for a knee at `knee` bent to `knee_angle` degrees."""
    ankle = (knee[0] - forward, knee[1] + LEG_LENGTH)
    ux, uy = ankle[0] - knee[0], ankle[1] - knee[1]
    norm = math.hypot(ux, uy)
    ux, uy = ux / norm, uy / norm
    t = math.radians(knee_angle)
    hx = ux * math.cos(t) - uy * math.sin(t)
    hy = ux * math.sin(t) + uy * math.cos(t)
    hip = (knee[0] + LEG_LENGTH * hx, knee[1] + LEG_LENGTH * hy)
    return hip, ankle


def squat_pose(knee_angle=170.0, back_lean=5.0, forward=0.0, drop=(), extra=None):
    """
    Build a JointSet with both knees at `knee_angle`, the torso leaning
    `back_lean` degrees from vertical and the knees `forward` units ahead
    of the ankles. Joints listed in `drop` are left out.
    """
    points = {}
    for side, kx in (("LEFT", 0.45), ("RIGHT", 0.55)):
        knee = (kx, 0.6)
        hip, ankle = _leg(knee, knee_angle, forward)
        points[Joint[f"{side}_KNEE"]] = knee
        points[Joint[f"{side}_HIP"]] = hip
        points[Joint[f"{side}_ANKLE"]] = ankle

    hx = (points[Joint.LEFT_HIP][0] + points[Joint.RIGHT_HIP][0]) / 2.0
    hy = (points[Joint.LEFT_HIP][1] + points[Joint.RIGHT_HIP][1]) / 2.0
    lean = math.radians(back_lean)
    sx = hx + TORSO_LENGTH * math.sin(lean)
    sy = hy - TORSO_LENGTH * math.cos(lean)
    points[Joint.LEFT_SHOULDER] = (sx - 0.05, sy)
    points[Joint.RIGHT_SHOULDER] = (sx + 0.05, sy)

    points.update(extra or {})
    for joint in drop:
        points.pop(joint, None)
    return JointSet(points)


@pytest.fixture
def pose():
    return squat_pose
