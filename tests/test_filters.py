import pytest

from squatcore.filters import JointSmoother, OneEuroFilter
from squatcore.joints import Joint, JointSet


def test_first_sample_passes_through():
    f = OneEuroFilter(min_cutoff=1.0, beta=0.0)
    assert f(0.5, 0.0) == 0.5


def test_filter_lags_a_step():
    f = OneEuroFilter(min_cutoff=1.0, beta=0.0)
    f(0.0, 0.0)
    out = f(1.0, 1 / 30)
    assert 0.0 < out < 1.0


def test_rejects_non_positive_cutoff():
    with pytest.raises(ValueError):
        OneEuroFilter(min_cutoff=0.0)


def test_joint_smoother_returns_joint_set():
    smoother = JointSmoother()
    joints = JointSet({Joint.NOSE: (0.5, 0.1), Joint.LEFT_KNEE: (0.4, 0.6)})
    out = smoother(joints, 0.0)
    assert isinstance(out, JointSet)
    assert out[Joint.NOSE] == pytest.approx((0.5, 0.1))


def test_joint_smoother_damps_jumps():
    smoother = JointSmoother(beta=0.0)
    smoother(JointSet({Joint.NOSE: (0.5, 0.1)}), 0.0)
    out = smoother(JointSet({Joint.NOSE: (0.6, 0.1)}), 1 / 30)
    assert 0.5 < out[Joint.NOSE].x < 0.6


def test_joint_smoother_forgets_vanished_joints():
    smoother = JointSmoother(beta=0.0)
    smoother(JointSet({Joint.NOSE: (0.5, 0.1), Joint.NECK: (0.5, 0.2)}), 0.0)
    smoother(JointSet({Joint.NECK: (0.5, 0.2)}), 1 / 30)
    out = smoother(JointSet({Joint.NOSE: (0.8, 0.1), Joint.NECK: (0.5, 0.2)}), 2 / 30)
    assert out[Joint.NOSE] == pytest.approx((0.8, 0.1))


def test_joint_smoother_reset():
    smoother = JointSmoother(beta=0.0)
    smoother(JointSet({Joint.NOSE: (0.5, 0.1)}), 0.0)
    smoother.reset()
    out = smoother(JointSet({Joint.NOSE: (0.9, 0.1)}), 1 / 30)
    assert out[Joint.NOSE] == pytest.approx((0.9, 0.1))
