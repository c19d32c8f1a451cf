"""
Squat repetition counter with state machine logic.
"""
import logging
import math
from dataclasses import dataclass
from enum import Enum

from .scheduler import Scheduler

logger = logging.getLogger(__name__)

STANDING_THRESHOLD = 160.0
BOTTOM_THRESHOLD = 90.0
HYSTERESIS = 5.0
REP_COOLDOWN = 0.5
TRACKING_TIMEOUT = 2.0

# Reported knee angle before any measurement (fully extended leg)
EXTENDED_ANGLE = 180.0

CALORIES_PER_REP = 0.5


class SquatState(Enum):
    STANDING = "Standing"
    DESCENDING = "Descending"
    BOTTOM = "Bottom Position"
    ASCENDING = "Ascending"

    @property
    def description(self):
        return {
            SquatState.STANDING: "Ready to squat",
            SquatState.DESCENDING: "Going down",
            SquatState.BOTTOM: "Hold bottom position",
            SquatState.ASCENDING: "Coming up",
        }[self]


@dataclass(frozen=True)
class RepCounterSnapshot:
    rep_count: int
    current_state: SquatState
    current_knee_angle: float
    is_tracking: bool
    cooldown_remaining: float


class RepCounter:
    """
    State machine for counting squat repetitions from the knee angle.

    States follow one full cycle per rep:
    1. STANDING   (knee > standing threshold, start and finish)
    2. DESCENDING (dropping below standing - hysteresis)
    3. BOTTOM     (knee < bottom threshold)
    4. ASCENDING  (rising above bottom + hysteresis)
    A rep is counted only on ASCENDING -> STANDING, and not again until the
    cooldown has passed.
    """

    def __init__(self, scheduler=None, standing_threshold=STANDING_THRESHOLD,
                 bottom_threshold=BOTTOM_THRESHOLD, hysteresis=HYSTERESIS,
                 cooldown=REP_COOLDOWN, tracking_timeout=TRACKING_TIMEOUT):
        """
        Initialize counter.

        Args:
            scheduler: Scheduler providing the clock and timeout timers
                       (a real-time one is created if None)
            standing_threshold: Knee angle above which the user is standing (degrees)
            bottom_threshold: Knee angle below which the user is at the bottom (degrees)
            hysteresis: Buffer applied when leaving STANDING and BOTTOM (degrees)
            cooldown: Seconds after a rep during which another rep cannot complete
            tracking_timeout: Seconds without an angle update before tracking is dropped
        """
        if bottom_threshold >= standing_threshold:
            raise ValueError("bottom_threshold must be below standing_threshold")
        if hysteresis < 0 or cooldown < 0 or tracking_timeout <= 0:
            raise ValueError("hysteresis and cooldown must be >= 0, tracking_timeout > 0")

        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self.standing_threshold = standing_threshold
        self.bottom_threshold = bottom_threshold
        self.hysteresis = hysteresis
        self.cooldown = cooldown
        self.tracking_timeout = tracking_timeout

        self.reps = 0
        self.state = SquatState.STANDING
        self.knee_angle = EXTENDED_ANGLE
        self.is_tracking = False
        self.last_rep_time = None
        self._timeout_timer = None

        self._arm_tracking_timeout()

    def update_knee_angle(self, knee_angle):
        """
        Feed a new knee angle measurement.

        Args:
            knee_angle: Current knee angle in degrees (0-180)

        Returns:
            True if a repetition was just completed, False otherwise
        """
        if knee_angle is None or not math.isfinite(knee_angle):
            logger.debug("Ignoring non-finite knee angle %r", knee_angle)
            return False

        self.knee_angle = float(knee_angle)
        self.is_tracking = True
        self._arm_tracking_timeout()

        new_state = self._next_state(self.knee_angle, self.state)
        if new_state is self.state:
            return False

        previous = self.state
        self.state = new_state
        logger.debug("%s -> %s at %.1f deg", previous.value, new_state.value, self.knee_angle)

        if previous is SquatState.ASCENDING and new_state is SquatState.STANDING:
            self._complete_rep()
            return True
        return False

    def _next_state(self, knee_angle, state):
        if state is SquatState.STANDING:
            if knee_angle < self.standing_threshold - self.hysteresis:
                return SquatState.DESCENDING

        elif state is SquatState.DESCENDING:
            if knee_angle < self.bottom_threshold:
                return SquatState.BOTTOM
            if knee_angle > self.standing_threshold:
                # Aborted descent
                return SquatState.STANDING

        elif state is SquatState.BOTTOM:
            if knee_angle > self.bottom_threshold + self.hysteresis:
                return SquatState.ASCENDING

        elif state is SquatState.ASCENDING:
            if knee_angle > self.standing_threshold and not self.in_cooldown():
                return SquatState.STANDING
            if knee_angle < self.bottom_threshold:
                return SquatState.BOTTOM

        return state

    def _complete_rep(self):
        self.reps += 1
        self.last_rep_time = self.scheduler.now()
        logger.info("Rep %d completed", self.reps)

    def in_cooldown(self):
        if self.last_rep_time is None:
            return False
        return self.scheduler.now() - self.last_rep_time < self.cooldown

    @property
    def cooldown_remaining(self):
        if self.last_rep_time is None:
            return 0.0
        return max(0.0, self.cooldown - (self.scheduler.now() - self.last_rep_time))

    # Tracking timeout

    def _arm_tracking_timeout(self):
        self.scheduler.cancel(self._timeout_timer)
        self._timeout_timer = self.scheduler.call_later(self.tracking_timeout, self._on_tracking_timeout)

    def _on_tracking_timeout(self):
        self._timeout_timer = None
        if self.is_tracking or self.state is not SquatState.STANDING:
            logger.info("No knee angle for %.1fs, tracking lost", self.tracking_timeout)
        self.is_tracking = False
        # Back to the resting state; not a rep transition
        self.state = SquatState.STANDING

    def stop(self):
        """Cancel pending timers. Count and state are kept."""
        self.scheduler.cancel(self._timeout_timer)
        self._timeout_timer = None

    def reset(self):
        """Reset counter to initial state."""
        self.reps = 0
        self.state = SquatState.STANDING
        self.knee_angle = EXTENDED_ANGLE
        self.is_tracking = False
        self.last_rep_time = None
        self._arm_tracking_timeout()

    def increment_rep(self):
        """Count a rep without going through the state machine (testing/debug only)."""
        self._complete_rep()

    def snapshot(self):
        return RepCounterSnapshot(
            rep_count=self.reps,
            current_state=self.state,
            current_knee_angle=self.knee_angle,
            is_tracking=self.is_tracking,
            cooldown_remaining=self.cooldown_remaining,
        )

    def state_progress(self):
        """
        Position within the current rep for UI animation.

        Returns:
            0.0 standing, 0.0-0.5 descending, 0.5 at the bottom, 0.5-1.0 ascending
        """
        span = self.standing_threshold - self.bottom_threshold
        if self.state is SquatState.STANDING:
            return 0.0
        if self.state is SquatState.DESCENDING:
            progress = (self.standing_threshold - self.knee_angle) / span
            return max(0.0, min(0.5, progress * 0.5))
        if self.state is SquatState.BOTTOM:
            return 0.5
        progress = (self.knee_angle - self.bottom_threshold) / span
        return max(0.5, min(1.0, 0.5 + progress * 0.5))

    def estimated_calories(self):
        return self.reps * CALORIES_PER_REP
