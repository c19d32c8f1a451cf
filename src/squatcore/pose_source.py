"""
Boundary between a pose detector's raw keypoints and the analysis core.

Converts keypoint arrays into a confidence-filtered JointSet and signals the
three ways a frame can fail as distinct exceptions.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict

import numpy as np

from .distance import body_confidence
from .joints import Joint, JointSet

logger = logging.getLogger(__name__)

MIN_JOINT_CONFIDENCE = 0.3
# Below this for every keypoint, nobody is in view
PRESENCE_CONFIDENCE = 0.1

# Detector keypoint names (snake_case) mapped onto tracked joints.
# Face keypoints other than the nose are not tracked.
KEYPOINT_JOINTS = {
    "nose": Joint.NOSE,
    "neck": Joint.NECK,
    "left_shoulder": Joint.LEFT_SHOULDER,
    "right_shoulder": Joint.RIGHT_SHOULDER,
    "left_elbow": Joint.LEFT_ELBOW,
    "right_elbow": Joint.RIGHT_ELBOW,
    "left_wrist": Joint.LEFT_WRIST,
    "right_wrist": Joint.RIGHT_WRIST,
    "left_hip": Joint.LEFT_HIP,
    "right_hip": Joint.RIGHT_HIP,
    "left_knee": Joint.LEFT_KNEE,
    "right_knee": Joint.RIGHT_KNEE,
    "left_ankle": Joint.LEFT_ANKLE,
    "right_ankle": Joint.RIGHT_ANKLE,
}


class PoseSourceError(Exception):
    """A frame produced no usable joints. `feedback` is the user-facing hint."""

    feedback = "Pose detection error"


class NoObservationError(PoseSourceError):
    feedback = "Position yourself in camera view"


class InsufficientJointsError(PoseSourceError):
    feedback = "Move closer to camera"


class SourceFailureError(PoseSourceError):
    feedback = "Camera error - please restart"
    error_message = "Camera processing error"


@dataclass(frozen=True)
class PoseFrame:
    """One detector observation: filtered joints plus raw per-joint confidences."""

    joints: JointSet
    confidences: Dict[Joint, float] = field(default_factory=dict)

    @property
    def body_confidence(self):
        return body_confidence(self.confidences)


def frame_from_keypoints(keypoints_xy, confidences, names, min_conf=MIN_JOINT_CONFIDENCE):
    """
    Build a PoseFrame from detector output.

    Args:
        keypoints_xy: Array of normalized (x, y) coordinates, shape (N, 2),
                      origin top-left
        confidences: Array of confidence scores, shape (N,)
        names: Keypoint names in detector order (length N)
        min_conf: Minimum confidence for a joint to be kept

    Returns:
        PoseFrame

    Raises:
        SourceFailureError: Arrays are malformed or do not match `names`
        NoObservationError: No keypoint reaches the presence floor
        InsufficientJointsError: A body is present but no tracked joint is confident
    """
    try:
        kps = np.asarray(keypoints_xy, dtype=float)
        conf = np.asarray(confidences, dtype=float)
    except (TypeError, ValueError) as e:
        raise SourceFailureError(f"Unreadable keypoints: {e}") from e

    if kps.size == 0 and conf.size == 0:
        raise NoObservationError("Detector returned no keypoints")

    if kps.ndim != 2 or kps.shape[1] != 2 or conf.shape != (kps.shape[0],) or len(names) != kps.shape[0]:
        raise SourceFailureError(
            f"Keypoint shape mismatch: points {kps.shape}, scores {conf.shape}, names {len(names)}"
        )
    if not np.all(np.isfinite(conf)):
        raise SourceFailureError("Non-finite keypoint confidence")

    if float(conf.max()) < PRESENCE_CONFIDENCE:
        raise NoObservationError("No body found in frame")

    raw = {}
    points = {}
    for i, name in enumerate(names):
        joint = KEYPOINT_JOINTS.get(name)
        if joint is None:
            continue
        raw[joint] = float(conf[i])
        if conf[i] >= min_conf and np.all(np.isfinite(kps[i])):
            points[joint] = (float(kps[i, 0]), float(kps[i, 1]))

    # Detectors without a neck keypoint: use the shoulder midpoint
    if Joint.NECK not in raw and Joint.LEFT_SHOULDER in raw and Joint.RIGHT_SHOULDER in raw:
        raw[Joint.NECK] = min(raw[Joint.LEFT_SHOULDER], raw[Joint.RIGHT_SHOULDER])
        ls = points.get(Joint.LEFT_SHOULDER)
        rs = points.get(Joint.RIGHT_SHOULDER)
        if ls is not None and rs is not None:
            points[Joint.NECK] = ((ls[0] + rs[0]) / 2.0, (ls[1] + rs[1]) / 2.0)

    joints = JointSet.from_normalized(points)
    if len(joints) == 0:
        raise InsufficientJointsError("No joints above confidence threshold")

    logger.debug("Frame with %d/%d joints", len(joints), len(raw))
    return PoseFrame(joints=joints, confidences=raw)
