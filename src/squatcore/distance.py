"""
Camera distance classification from the body's vertical span on screen.
"""
import logging
from dataclasses import dataclass
from enum import Enum

from .joints import Joint

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.6
STABLE_FRAMES = 10
TOO_CLOSE_SPAN = 0.4
TOO_FAR_SPAN = 0.75

HEAD_JOINTS = (Joint.NOSE, Joint.NECK)
FEET_JOINTS = (Joint.LEFT_ANKLE, Joint.RIGHT_ANKLE, Joint.LEFT_KNEE, Joint.RIGHT_KNEE)
CONFIDENCE_JOINTS = (Joint.NOSE, Joint.NECK, Joint.LEFT_ANKLE, Joint.RIGHT_ANKLE)


class DistanceClass(Enum):
    TOO_CLOSE = "tooClose"
    OPTIMAL = "optimal"
    TOO_FAR = "tooFar"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DistanceReading:
    span: float
    confidence: float
    classification: DistanceClass
    stable_frames: int

    @property
    def too_close(self):
        return self.classification is DistanceClass.TOO_CLOSE

    @property
    def optimal(self):
        return self.classification is DistanceClass.OPTIMAL

    @property
    def too_far(self):
        return self.classification is DistanceClass.TOO_FAR


def vertical_span(joints):
    """
    Head-to-feet height of the body in normalized units, clamped to [0, 1].

    Uses the highest head joint and lowest foot/knee joint; if either group
    is missing, falls back to the full y-range of all detected joints.
    """
    head_ys = [joints[j].y for j in HEAD_JOINTS if j in joints]
    feet_ys = [joints[j].y for j in FEET_JOINTS if j in joints]

    if head_ys and feet_ys:
        top, bottom = min(head_ys), max(feet_ys)
    else:
        ys = [p.y for p in joints.values()]
        if not ys:
            return 0.0
        top, bottom = min(ys), max(ys)

    return max(0.0, min(1.0, bottom - top))


def body_confidence(confidences):
    """
    Aggregate detection confidence for the body.

    Args:
        confidences: Mapping of Joint -> raw confidence, including joints
                     below the detection threshold

    Returns:
        Mean over nose/neck/ankles when at least two are available,
        otherwise the mean over every joint; 0.0 if there are none
    """
    preferred = [float(confidences[j]) for j in CONFIDENCE_JOINTS if j in confidences]
    values = preferred if len(preferred) >= 2 else [float(c) for c in confidences.values()]
    if not values:
        return 0.0
    return sum(values) / len(values)


class DistanceClassifier:
    """
    Classifies camera distance once confidence has been stable for a while.

    Single-frame spans jitter near the thresholds, so nothing but UNKNOWN is
    reported until `stable_frames` consecutive frames exceed `min_confidence`.
    """

    def __init__(self, min_confidence=MIN_CONFIDENCE, stable_frames=STABLE_FRAMES,
                 too_close_span=TOO_CLOSE_SPAN, too_far_span=TOO_FAR_SPAN):
        if too_close_span >= too_far_span:
            raise ValueError("too_close_span must be below too_far_span")
        if stable_frames < 1:
            raise ValueError("stable_frames must be >= 1")
        self.min_confidence = min_confidence
        self.stable_frames = stable_frames
        self.too_close_span = too_close_span
        self.too_far_span = too_far_span

        self.high_confidence_frames = 0
        self.last_classification = DistanceClass.UNKNOWN

    def classify(self, joints, confidence):
        """
        Classify one frame.

        Args:
            joints: JointSet for the frame
            confidence: Aggregate body confidence (see body_confidence)

        Returns:
            DistanceReading
        """
        span = vertical_span(joints)

        if confidence > self.min_confidence:
            self.high_confidence_frames += 1
        else:
            self.high_confidence_frames = 0

        if self.high_confidence_frames < self.stable_frames:
            classification = DistanceClass.UNKNOWN
        elif span < self.too_close_span:
            classification = DistanceClass.TOO_CLOSE
        elif span < self.too_far_span:
            classification = DistanceClass.OPTIMAL
        else:
            classification = DistanceClass.TOO_FAR

        if classification is not self.last_classification:
            logger.debug("Distance %s -> %s", self.last_classification.value, classification.value)
        self.last_classification = classification

        logger.debug("span=%.3f confidence=%.2f frames=%d", span, confidence, self.high_confidence_frames)
        return DistanceReading(span, confidence, classification, self.high_confidence_frames)

    def reset(self):
        self.high_confidence_frames = 0
        self.last_classification = DistanceClass.UNKNOWN
