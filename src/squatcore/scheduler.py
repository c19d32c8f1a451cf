"""
Single-threaded timer scheduling with a swappable clock.

Per-session timers (tracking timeout, cooldowns) are registered here and
fired from the owner's loop via run_due(), so every callback runs on the
same thread as frame processing. Tests pass a VirtualClock and move time
explicitly instead of sleeping.
"""
import heapq
import itertools
import logging
import time

logger = logging.getLogger(__name__)


class VirtualClock:
    """Manually advanced clock for deterministic tests and replays."""

    def __init__(self, start=0.0):
        self.t = float(start)

    def __call__(self):
        return self.t

    def advance(self, seconds):
        if seconds < 0:
            raise ValueError("cannot move a clock backwards")
        self.t += seconds
        return self.t

    def set(self, t):
        self.t = float(t)


class TimerHandle:
    """Handle returned by Scheduler.call_later()."""

    __slots__ = ("deadline", "callback", "cancelled", "_seq")

    def __init__(self, deadline, callback, seq):
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False
        self._seq = seq

    def cancel(self):
        self.cancelled = True

    def __lt__(self, other):
        return (self.deadline, self._seq) < (other.deadline, other._seq)


class Scheduler:
    """
    Timer queue driven by an injectable clock.

    Args:
        clock: Zero-argument callable returning seconds (monotonic).
               Defaults to time.monotonic.
    """

    def __init__(self, clock=None):
        self.clock = clock if clock is not None else time.monotonic
        self._heap = []
        self._seq = itertools.count()

    def now(self):
        return self.clock()

    def call_later(self, delay, callback):
        """Schedule callback() to run once `delay` seconds from now."""
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        handle = TimerHandle(self.now() + delay, callback, next(self._seq))
        heapq.heappush(self._heap, handle)
        return handle

    def cancel(self, handle):
        if handle is not None:
            handle.cancel()

    def cancel_all(self):
        for handle in self._heap:
            handle.cancel()
        self._heap.clear()

    @property
    def pending(self):
        return sum(1 for h in self._heap if not h.cancelled)

    def run_due(self):
        """
        Fire every timer whose deadline has passed, in deadline order.

        Returns:
            Number of callbacks that ran
        """
        fired = 0
        now = self.now()
        while self._heap and self._heap[0].deadline <= now:
            handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            handle.cancelled = True
            handle.callback()
            fired += 1
        if fired:
            logger.debug("Fired %d timer(s) at t=%.3f", fired, now)
        return fired
