"""
One Euro Filter for smoothing jittery keypoints.
Based on "The One Euro Filter" (Casiez et al., 2012).
"""
import math

import numpy as np

from .joints import JointSet


class OneEuroFilter:
    """Low-pass filter with adaptive cutoff frequency for reducing jitter."""

    def __init__(self, min_cutoff=1.0, beta=0.0, d_cutoff=1.0):
        """
        Args:
            min_cutoff: Minimum cutoff frequency (Hz); lower = smoother at rest
            beta: Cutoff slope; higher = less lag during fast motion
            d_cutoff: Cutoff frequency for the derivative
        """
        if min_cutoff <= 0 or d_cutoff <= 0:
            raise ValueError("cutoff frequencies must be positive")
        self.min_cutoff = float(min_cutoff)
        self.beta = float(beta)
        self.d_cutoff = float(d_cutoff)
        self.reset()

    @staticmethod
    def _alpha(cutoff, freq):
        tau = 1.0 / (2.0 * math.pi * cutoff)
        te = 1.0 / freq
        return 1.0 / (1.0 + tau / te)

    def reset(self):
        self.x_prev = None
        self.dx_prev = None
        self.t_prev = None

    def __call__(self, x, t):
        """
        Filter a new sample.

        Args:
            x: New value
            t: Sample time in seconds

        Returns:
            Filtered value
        """
        if self.t_prev is None:
            self.t_prev = t
            self.x_prev = x
            self.dx_prev = 0.0
            return x

        freq = 1.0 / max(1e-6, t - self.t_prev)

        dx = (x - self.x_prev) * freq
        a_d = self._alpha(self.d_cutoff, freq)
        dx_hat = a_d * dx + (1.0 - a_d) * self.dx_prev

        cutoff = self.min_cutoff + self.beta * abs(dx_hat)
        a = self._alpha(cutoff, freq)
        x_hat = a * x + (1.0 - a) * self.x_prev

        self.x_prev = x_hat
        self.dx_prev = dx_hat
        self.t_prev = t
        return x_hat


class OneEuro2D:
    """One Euro Filter for 2D points (x, y coordinates)."""

    def __init__(self, min_cutoff=1.0, beta=0.0, d_cutoff=1.0):
        self.fx = OneEuroFilter(min_cutoff, beta, d_cutoff)
        self.fy = OneEuroFilter(min_cutoff, beta, d_cutoff)

    def reset(self):
        self.fx.reset()
        self.fy.reset()

    def __call__(self, pt, t):
        x, y = pt
        return np.array([self.fx(x, t), self.fy(y, t)], dtype=float)


class JointSmoother:
    """
    Smooths a JointSet joint-by-joint across frames.

    A joint that drops out of a frame loses its filter state, so when it is
    detected again it starts fresh instead of blending with an old position.
    """

    def __init__(self, min_cutoff=1.0, beta=0.1, d_cutoff=1.0):
        self.min_cutoff = min_cutoff
        self.beta = beta
        self.d_cutoff = d_cutoff
        self._filters = {}

    def __call__(self, joints, t):
        for joint in list(self._filters):
            if joint not in joints:
                del self._filters[joint]

        smoothed = {}
        for joint, point in joints.items():
            f = self._filters.get(joint)
            if f is None:
                f = self._filters[joint] = OneEuro2D(self.min_cutoff, self.beta, self.d_cutoff)
            smoothed[joint] = tuple(f(point, t))
        return JointSet(smoothed)

    def reset(self):
        self._filters.clear()
