"""
Squat form analysis: depth, back posture and knee tracking checks with
prioritized feedback and a speech gate.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from . import geometry
from .joints import Joint, SQUAT_JOINTS
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

# Thresholds
PERFECT_KNEE_MIN = 70.0
PERFECT_KNEE_MAX = 90.0
MAX_BACK_LEAN = 20.0
KNEE_FORWARD_THRESHOLD = 0.05
MIN_JOINTS_REQUIRED = 6
SQUAT_POSITION_ANGLE = 120.0
VOICE_COOLDOWN = 3.0

# Messages
MSG_POSITION_YOURSELF = "Position yourself in camera view"
MSG_NOT_ENOUGH_JOINTS = "Not enough joints detected for analysis"

MSG_PERFECT_DEPTH = "Perfect squat depth!"
MSG_GO_LOWER = "Go lower - squat deeper"
MSG_EXCELLENT_DEPTH = "Excellent depth!"
MSG_NO_KNEE = "Cannot detect knee position"

MSG_GOOD_BACK = "Good back posture"
MSG_STRAIGHTEN_BACK = "Keep back straight - reduce forward lean"
MSG_NO_TORSO = "Cannot detect torso position"
MSG_NO_BACK_ANGLE = "Cannot analyze back posture"

MSG_GOOD_TRACKING = "Good knee tracking"
MSG_KNEES_FORWARD = "Knees too far forward - sit back more"
MSG_NO_KNEE_ANKLE = "Cannot detect knee/ankle positions"

AFFIRMATIONS = (
    "Perfect squat form!",
    "Excellent technique!",
    "Great job!",
    "Perfect depth!",
    "Outstanding form!",
    "Keep it up!",
    "Textbook squat!",
)

POSITIVE_KEYWORDS = ("perfect", "great", "excellent", "good", "nice", "well done", "keep it up")
CORRECTIVE_KEYWORDS = ("go lower", "straighten", "back straight", "knees", "forward", "deeper", "sit back")


class FeedbackCategory(Enum):
    POSITIVE = "positive"
    CORRECTIVE = "corrective"
    NEUTRAL = "neutral"

    @property
    def priority(self):
        """Speech priority, higher is more urgent."""
        return {
            FeedbackCategory.CORRECTIVE: 3,
            FeedbackCategory.POSITIVE: 2,
            FeedbackCategory.NEUTRAL: 1,
        }[self]


@dataclass(frozen=True)
class CriterionResult:
    value: Optional[float]
    is_good: bool
    message: str


@dataclass(frozen=True)
class SquatAnalysis:
    primary_feedback: str
    feedback_category: FeedbackCategory
    should_speak: bool
    is_new_message: bool
    knee_angle: Optional[float] = None
    back_lean_angle: Optional[float] = None
    knee_forward_distance: Optional[float] = None
    has_good_knee_depth: bool = False
    has_good_back_posture: bool = False
    has_good_knee_tracking: bool = False
    form_score: int = 0
    detailed_feedback: List[str] = field(default_factory=list)


def categorize(message):
    """Classify a feedback message by keyword matching (positive checked first)."""
    text = message.lower()
    if any(k in text for k in POSITIVE_KEYWORDS):
        return FeedbackCategory.POSITIVE
    if any(k in text for k in CORRECTIVE_KEYWORDS):
        return FeedbackCategory.CORRECTIVE
    return FeedbackCategory.NEUTRAL


def form_score(*flags):
    """Percentage of passed criteria, integer division (0, 33, 66 or 100 for three)."""
    if not flags:
        return 0
    return sum(1 for f in flags if f) * 100 // len(flags)


def check_knee_depth(joints):
    """Average hip-knee-ankle angle; 70-90 is perfect, deeper is still good."""
    left = geometry.knee_angle(joints.get(Joint.LEFT_HIP), joints.get(Joint.LEFT_KNEE),
                               joints.get(Joint.LEFT_ANKLE))
    right = geometry.knee_angle(joints.get(Joint.RIGHT_HIP), joints.get(Joint.RIGHT_KNEE),
                                joints.get(Joint.RIGHT_ANKLE))
    knee = geometry.average_angle(left, right)

    if knee is None:
        return CriterionResult(None, False, MSG_NO_KNEE)
    if PERFECT_KNEE_MIN <= knee <= PERFECT_KNEE_MAX:
        return CriterionResult(knee, True, MSG_PERFECT_DEPTH)
    if knee > PERFECT_KNEE_MAX:
        return CriterionResult(knee, False, MSG_GO_LOWER)
    return CriterionResult(knee, True, MSG_EXCELLENT_DEPTH)


def check_back_posture(joints):
    """Lean of the shoulder-center to hip-center line from vertical."""
    shoulder = geometry.midpoint(joints.get(Joint.LEFT_SHOULDER), joints.get(Joint.RIGHT_SHOULDER))
    hip = geometry.midpoint(joints.get(Joint.LEFT_HIP), joints.get(Joint.RIGHT_HIP))
    if shoulder is None or hip is None:
        return CriterionResult(None, False, MSG_NO_TORSO)

    lean = geometry.torso_lean(shoulder, hip)
    if lean is None:
        return CriterionResult(None, False, MSG_NO_BACK_ANGLE)
    if lean <= MAX_BACK_LEAN:
        return CriterionResult(lean, True, MSG_GOOD_BACK)
    return CriterionResult(lean, False, MSG_STRAIGHTEN_BACK)


def check_knee_tracking(joints):
    """Horizontal knee offset ahead of the ankles (positive = knees forward)."""
    lk = joints.get(Joint.LEFT_KNEE)
    rk = joints.get(Joint.RIGHT_KNEE)
    la = joints.get(Joint.LEFT_ANKLE)
    ra = joints.get(Joint.RIGHT_ANKLE)
    if lk is None or rk is None or la is None or ra is None:
        return CriterionResult(None, False, MSG_NO_KNEE_ANKLE)

    forward = (lk.x + rk.x) / 2.0 - (la.x + ra.x) / 2.0
    if forward <= KNEE_FORWARD_THRESHOLD:
        return CriterionResult(forward, True, MSG_GOOD_TRACKING)
    return CriterionResult(forward, False, MSG_KNEES_FORWARD)


class FormAnalyzer:
    """
    Per-session squat form analyzer.

    Holds the only cross-frame analysis state: the last feedback message and
    the time of the last vocalized message, which together gate should_speak.
    """

    def __init__(self, clock=None, wall_clock=None, voice_cooldown=VOICE_COOLDOWN):
        """
        Args:
            clock: Monotonic seconds for the speech cooldown (defaults to a
                   real-time Scheduler clock)
            wall_clock: Unix seconds used to rotate affirmations (defaults to time.time)
            voice_cooldown: Minimum seconds between vocalized messages
        """
        if voice_cooldown < 0:
            raise ValueError("voice_cooldown must be >= 0")
        self.clock = clock if clock is not None else Scheduler().now
        self.wall_clock = wall_clock if wall_clock is not None else time.time
        self.voice_cooldown = voice_cooldown
        self.last_feedback_message = ""
        self.last_voice_time = None

    def analyze(self, joints):
        """
        Analyze one frame of joints.

        Args:
            joints: JointSet for the current frame

        Returns:
            SquatAnalysis for this frame
        """
        required = joints.subset(SQUAT_JOINTS)
        if len(required) < MIN_JOINTS_REQUIRED:
            should_speak, is_new = self._speech_decision(MSG_POSITION_YOURSELF, FeedbackCategory.NEUTRAL)
            return SquatAnalysis(
                primary_feedback=MSG_POSITION_YOURSELF,
                feedback_category=FeedbackCategory.NEUTRAL,
                should_speak=should_speak,
                is_new_message=is_new,
                detailed_feedback=[MSG_NOT_ENOUGH_JOINTS],
            )

        depth = check_knee_depth(required)
        back = check_back_posture(required)
        tracking = check_knee_tracking(required)

        # Safety issues first, then depth, then encouragement
        if not back.is_good:
            primary = back.message
        elif not tracking.is_good:
            primary = tracking.message
        elif not depth.is_good:
            primary = depth.message
        else:
            primary = None

        if primary is None:
            # Not every affirmation contains a positive keyword
            primary = self.select_affirmation()
            category = FeedbackCategory.POSITIVE
        else:
            category = categorize(primary)

        should_speak, is_new = self._speech_decision(primary, category)
        score = form_score(depth.is_good, back.is_good, tracking.is_good)

        logger.debug("knee=%s lean=%s forward=%s score=%d -> %r",
                     _fmt(depth.value), _fmt(back.value), _fmt(tracking.value, 3), score, primary)

        return SquatAnalysis(
            primary_feedback=primary,
            feedback_category=category,
            should_speak=should_speak,
            is_new_message=is_new,
            knee_angle=depth.value,
            back_lean_angle=back.value,
            knee_forward_distance=tracking.value,
            has_good_knee_depth=depth.is_good,
            has_good_back_posture=back.is_good,
            has_good_knee_tracking=tracking.is_good,
            form_score=score,
            detailed_feedback=[depth.message, back.message, tracking.message],
        )

    def select_affirmation(self):
        # Stable within one second, rotates across seconds
        return AFFIRMATIONS[int(self.wall_clock()) % len(AFFIRMATIONS)]

    def _speech_decision(self, message, category):
        now = self.clock()
        is_new = message != self.last_feedback_message
        cooldown_expired = (self.last_voice_time is None
                            or now - self.last_voice_time >= self.voice_cooldown)

        self.last_feedback_message = message

        if category is FeedbackCategory.CORRECTIVE:
            should_speak = is_new or cooldown_expired
        elif category is FeedbackCategory.POSITIVE:
            should_speak = is_new and cooldown_expired
        else:
            should_speak = False

        if should_speak:
            self.last_voice_time = now
        return should_speak, is_new

    def reset_feedback_tracking(self):
        self.last_feedback_message = ""
        self.last_voice_time = None

    # Convenience wrappers. Each runs a full analysis and so advances the speech gate.

    def quick_feedback(self, joints):
        return self.analyze(joints).primary_feedback

    def is_in_squat_position(self, joints):
        knee = self.analyze(joints).knee_angle
        return knee is not None and knee < SQUAT_POSITION_ANGLE

    def form_score(self, joints):
        return self.analyze(joints).form_score

    def speech_feedback(self, joints):
        analysis = self.analyze(joints)
        return analysis.primary_feedback, analysis.should_speak, analysis.feedback_category


def _fmt(value, digits=1):
    return "n/a" if value is None else f"{value:.{digits}f}"
