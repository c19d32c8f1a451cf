"""
Joint identifiers and the immutable per-frame joint set.
"""
from collections.abc import Mapping
from enum import Enum
from typing import NamedTuple, Optional


class Joint(Enum):
    """Named body landmarks tracked for squat analysis."""

    NOSE = "nose"
    NECK = "neck"
    LEFT_SHOULDER = "leftShoulder"
    RIGHT_SHOULDER = "rightShoulder"
    LEFT_ELBOW = "leftElbow"
    RIGHT_ELBOW = "rightElbow"
    LEFT_WRIST = "leftWrist"
    RIGHT_WRIST = "rightWrist"
    LEFT_HIP = "leftHip"
    RIGHT_HIP = "rightHip"
    LEFT_KNEE = "leftKnee"
    RIGHT_KNEE = "rightKnee"
    LEFT_ANKLE = "leftAnkle"
    RIGHT_ANKLE = "rightAnkle"


class Point(NamedTuple):
    """2D position in normalized image coordinates (origin top-left, y down)."""

    x: float
    y: float


# Joints needed by the form analyzer (hips, knees, ankles, shoulders)
SQUAT_JOINTS = (
    Joint.LEFT_HIP, Joint.RIGHT_HIP,
    Joint.LEFT_KNEE, Joint.RIGHT_KNEE,
    Joint.LEFT_ANKLE, Joint.RIGHT_ANKLE,
    Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER,
)

# Skeleton edges used for overlay drawing
SKELETON_PAIRS = (
    (Joint.LEFT_SHOULDER, Joint.LEFT_ELBOW), (Joint.LEFT_ELBOW, Joint.LEFT_WRIST),
    (Joint.RIGHT_SHOULDER, Joint.RIGHT_ELBOW), (Joint.RIGHT_ELBOW, Joint.RIGHT_WRIST),
    (Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER),
    (Joint.LEFT_SHOULDER, Joint.LEFT_HIP), (Joint.RIGHT_SHOULDER, Joint.RIGHT_HIP),
    (Joint.LEFT_HIP, Joint.RIGHT_HIP),
    (Joint.LEFT_HIP, Joint.LEFT_KNEE), (Joint.LEFT_KNEE, Joint.LEFT_ANKLE),
    (Joint.RIGHT_HIP, Joint.RIGHT_KNEE), (Joint.RIGHT_KNEE, Joint.RIGHT_ANKLE),
    (Joint.NOSE, Joint.NECK),
)


def _as_joint(key):
    if isinstance(key, Joint):
        return key
    return Joint(key)


def _in_unit_range(p):
    return 0.0 <= p.x <= 1.0 and 0.0 <= p.y <= 1.0


class JointSet(Mapping):
    """
    Read-only mapping of Joint -> Point for a single camera frame.

    Only confidently detected joints are present. An absent joint means
    "unknown", so lookups go through get() and return None rather than a
    default coordinate.
    """

    __slots__ = ("_points",)

    def __init__(self, points=None):
        """
        Build a joint set.

        Args:
            points: Mapping of Joint (or its camelCase name) to an (x, y)
                    pair. None builds an empty set.
        """
        data = {}
        for key, value in (points or {}).items():
            if value is None:
                continue
            x, y = value
            data[_as_joint(key)] = Point(float(x), float(y))
        self._points = data

    @classmethod
    def from_normalized(cls, points):
        """Build a joint set, dropping points that fall outside [0, 1]."""
        kept = {}
        for key, value in points.items():
            if value is None:
                continue
            p = Point(float(value[0]), float(value[1]))
            if _in_unit_range(p):
                kept[key] = p
        return cls(kept)

    def __getitem__(self, joint):
        return self._points[_as_joint(joint)]

    def __iter__(self):
        return iter(self._points)

    def __len__(self):
        return len(self._points)

    def __contains__(self, joint):
        try:
            return _as_joint(joint) in self._points
        except ValueError:
            return False

    def get(self, joint, default=None) -> Optional[Point]:
        return self._points.get(_as_joint(joint), default)

    def subset(self, joints) -> "JointSet":
        """Return a new set holding only the requested joints that are present."""
        return JointSet({j: self._points[j] for j in joints if j in self._points})

    def __repr__(self):
        inner = ", ".join(f"{j.value}=({p.x:.3f}, {p.y:.3f})" for j, p in self._points.items())
        return f"JointSet({inner})"
