"""
Per-session workout coordinator.

Routes each accepted frame through distance guidance, form analysis and rep
counting, and decides what gets vocalized or triggers haptics. One session
owns its analyzer, counter, classifier, speech throttle and scheduler;
nothing is shared between sessions.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .counter import RepCounter, SquatState
from .distance import DistanceClassifier
from .form import FeedbackCategory, FormAnalyzer, MSG_POSITION_YOURSELF, VOICE_COOLDOWN
from .joints import JointSet
from .pose_source import PoseSourceError, SourceFailureError
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

FRAME_INTERVAL = 0.067  # ~15 fps
SPEECH_INTERVAL = 4.0
TOO_CLOSE_DELAY = 3.0
WARMUP_DELAY = 1.5

OPTIMAL_HAPTIC_INTENSITY = 0.7
REP_HAPTIC_INTENSITY = 1.0

MSG_STARTING = "Starting camera..."
MSG_STOPPED = "Workout stopped"
MSG_TAP_START = "Tap start to begin"
MSG_STEP_BACK = "Please step back"
FORM_CHECK_PREFIX = "Form check: "


def rep_announcement(count):
    return "1 rep completed" if count == 1 else f"{count} reps completed"


class SpeechThrottle:
    """
    Coordinator-level speech gate: never the same message twice in a row,
    and at least `min_interval` seconds between any two messages.
    """

    def __init__(self, clock, min_interval=SPEECH_INTERVAL):
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.clock = clock
        self.min_interval = min_interval
        self.reset()

    def allow(self, message):
        now = self.clock()
        if message == self.last_message:
            return False
        if self.last_time is not None and now - self.last_time < self.min_interval:
            return False
        self.last_message = message
        self.last_time = now
        return True

    def reset(self):
        self.last_message = ""
        self.last_time = None


@dataclass(frozen=True)
class SessionStatus:
    """Values a UI polls each frame."""

    is_active: bool
    is_loading: bool
    rep_count: int
    squat_state: SquatState
    rep_progress: float
    knee_angle: Optional[float]
    form_score: int
    feedback_message: str
    error_message: Optional[str]
    is_tracking: bool
    cooldown_remaining: float
    is_too_close: bool
    is_optimal_distance: bool
    is_too_far: bool


@dataclass(frozen=True)
class WorkoutStats:
    reps: int
    calories: float
    duration: float


class WorkoutSession:
    """
    Orchestrates one user's workout.

    Args:
        speech_sink: callable(text, priority) receiving vocalization requests;
                     priority=True should interrupt current playback
        haptic_sink: callable(intensity) fired on reps and optimal distance
        sound_sink: callable() fired on reps
        scheduler: Scheduler owned by this session (a real-time one if None)
        wall_clock: Unix-time callable for the form analyzer's affirmations
    """

    def __init__(self, speech_sink=None, haptic_sink=None, sound_sink=None, scheduler=None,
                 wall_clock=None, frame_interval=FRAME_INTERVAL, speech_interval=SPEECH_INTERVAL,
                 voice_cooldown=VOICE_COOLDOWN, too_close_delay=TOO_CLOSE_DELAY):
        if frame_interval < 0 or too_close_delay < 0:
            raise ValueError("frame_interval and too_close_delay must be >= 0")

        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self.speech_sink = speech_sink
        self.haptic_sink = haptic_sink
        self.sound_sink = sound_sink
        self.frame_interval = frame_interval
        self.too_close_delay = too_close_delay

        self.analyzer = FormAnalyzer(clock=self.scheduler.now, wall_clock=wall_clock,
                                     voice_cooldown=voice_cooldown)
        self.counter = RepCounter(scheduler=self.scheduler)
        self.distance = DistanceClassifier()
        self.throttle = SpeechThrottle(self.scheduler.now, speech_interval)

        # Settings
        self.speech_enabled = True
        self.haptics_enabled = True
        self.sound_enabled = True

        # Published state
        self.is_active = False
        self.is_loading = False
        self.joint_points = JointSet()
        self.feedback_message = MSG_POSITION_YOURSELF
        self.error_message = None
        self.rep_count = 0
        self.knee_angle = None
        self.form_score = 0
        self.is_too_close = False
        self.is_optimal_distance = False
        self.is_too_far = False

        self._last_frame_time = None
        self._started_at = None
        self._stopped_at = None
        self._too_close_since = None
        self._spoken_too_close = False
        self._warmup_timer = None

    # Lifecycle

    def start(self):
        if self.is_active:
            return
        self.is_active = True
        self.is_loading = True
        self.error_message = None
        self.feedback_message = MSG_STARTING
        self.joint_points = JointSet()

        self.counter.reset()
        self._sync_rep_count(announce=False)
        self.distance.reset()
        self._last_frame_time = None
        self._started_at = self.scheduler.now()
        self._stopped_at = None
        self._warmup_timer = self.scheduler.call_later(WARMUP_DELAY, self._on_warmup)
        logger.info("Workout started")

    def _on_warmup(self):
        self._warmup_timer = None
        self.is_loading = False
        if self.feedback_message == MSG_STARTING:
            self.feedback_message = MSG_POSITION_YOURSELF

    def stop(self):
        """Stop processing and cancel session timers. The rep count is kept."""
        if not self.is_active:
            return
        self.is_active = False
        self.is_loading = False
        self.counter.stop()
        self.scheduler.cancel_all()
        self._warmup_timer = None
        self._stopped_at = self.scheduler.now()

        self.joint_points = JointSet()
        self.feedback_message = MSG_STOPPED
        self.knee_angle = None
        self.error_message = None
        logger.info("Workout stopped after %d reps", self.rep_count)

    def toggle_workout(self):
        if self.is_active:
            self.stop()
        else:
            self.start()

    def reset_workout(self):
        self.counter.reset()
        self._sync_rep_count(announce=False)
        self.joint_points = JointSet()
        self.feedback_message = MSG_POSITION_YOURSELF if self.is_active else MSG_TAP_START
        self.knee_angle = None
        self.form_score = 0
        self.error_message = None

        self.analyzer.reset_feedback_tracking()
        self.throttle.reset()
        logger.info("Workout reset")

    def tick(self):
        """Fire due timers. Call once per loop iteration, even without frames."""
        return self.scheduler.run_due()

    # Frame intake

    def accept_frame(self, now=None):
        """
        Rate-limit incoming frames.

        Frames arriving less than `frame_interval` after the last accepted
        one are dropped, not queued.
        """
        if not self.is_active:
            return False
        now = self.scheduler.now() if now is None else now
        if self._last_frame_time is not None and now - self._last_frame_time < self.frame_interval:
            return False
        self._last_frame_time = now
        return True

    def process_frame(self, frame):
        """
        Run one accepted PoseFrame through the pipeline.

        Returns:
            The frame's SquatAnalysis, or None when the session is inactive
        """
        if not self.is_active:
            return None
        self.tick()

        self.joint_points = frame.joints
        analysis = self.analyzer.analyze(frame.joints)
        self.feedback_message = analysis.primary_feedback
        self.form_score = analysis.form_score
        self.knee_angle = analysis.knee_angle

        self._speak_feedback(analysis)

        if analysis.knee_angle is not None:
            self.counter.update_knee_angle(analysis.knee_angle)
            self._sync_rep_count()

        self.error_message = None
        self._update_distance(frame)
        return analysis

    def handle_pose_error(self, error):
        """Turn a pose source failure into user feedback. Never raises."""
        self.joint_points = JointSet()
        self.feedback_message = error.feedback
        if isinstance(error, SourceFailureError):
            self.error_message = error.error_message
        elif type(error) is PoseSourceError:
            self.error_message = str(error) or error.feedback
        self.knee_angle = None
        self.form_score = 0
        logger.warning("Pose source: %s (%s)", type(error).__name__, error)

    # Speech and haptics

    def _speak(self, text, priority):
        if self.speech_sink is None:
            return
        logger.debug("Speak%s: %s", " (priority)" if priority else "", text)
        self.speech_sink(text, priority)

    def _speak_feedback(self, analysis):
        if not (self.speech_enabled and analysis.should_speak):
            return
        message = analysis.primary_feedback
        if analysis.feedback_category is FeedbackCategory.POSITIVE:
            if self.throttle.allow(message):
                self._speak(message, False)
        elif analysis.feedback_category is FeedbackCategory.CORRECTIVE:
            if self.throttle.allow(message):
                self._speak(FORM_CHECK_PREFIX + message, True)

    def _sync_rep_count(self, announce=True):
        new_count = self.counter.reps
        old_count = self.rep_count
        self.rep_count = new_count
        if announce and new_count > old_count:
            self._rep_feedback()
            self._announce_rep(new_count)

    def _rep_feedback(self):
        if self.haptics_enabled and self.haptic_sink is not None:
            self.haptic_sink(REP_HAPTIC_INTENSITY)
        if self.sound_enabled and self.sound_sink is not None:
            self.sound_sink()

    def _announce_rep(self, count):
        if not self.speech_enabled:
            return
        message = rep_announcement(count)
        if self.throttle.allow(message):
            self._speak(message, False)

    # Distance guidance

    def _update_distance(self, frame):
        reading = self.distance.classify(frame.joints, frame.body_confidence)
        self.is_too_close = reading.too_close
        self.is_optimal_distance = reading.optimal
        self.is_too_far = reading.too_far

        if reading.too_close:
            now = self.scheduler.now()
            if self._too_close_since is None:
                self._too_close_since = now
            if (self.speech_enabled and not self._spoken_too_close
                    and now - self._too_close_since >= self.too_close_delay):
                if self.throttle.allow(MSG_STEP_BACK):
                    self._speak(FORM_CHECK_PREFIX + MSG_STEP_BACK, True)
                    self._spoken_too_close = True
        else:
            self._too_close_since = None

        if reading.optimal:
            if self.haptics_enabled and self.haptic_sink is not None:
                self.haptic_sink(OPTIMAL_HAPTIC_INTENSITY)
            self._spoken_too_close = False

    # Reporting

    def status(self):
        snap = self.counter.snapshot()
        return SessionStatus(
            is_active=self.is_active,
            is_loading=self.is_loading,
            rep_count=self.rep_count,
            squat_state=snap.current_state,
            rep_progress=self.counter.state_progress(),
            knee_angle=self.knee_angle,
            form_score=self.form_score,
            feedback_message=self.feedback_message,
            error_message=self.error_message,
            is_tracking=snap.is_tracking,
            cooldown_remaining=snap.cooldown_remaining,
            is_too_close=self.is_too_close,
            is_optimal_distance=self.is_optimal_distance,
            is_too_far=self.is_too_far,
        )

    def workout_stats(self):
        if self._started_at is None:
            duration = 0.0
        else:
            end = self._stopped_at if self._stopped_at is not None else self.scheduler.now()
            duration = end - self._started_at
        return WorkoutStats(reps=self.rep_count, calories=self.counter.estimated_calories(),
                            duration=duration)

    def debug_increment_rep(self):
        """Count a rep by hand (testing affordance, bypasses the state machine)."""
        self.counter.increment_rep()
        self._sync_rep_count()
