"""
Geometric calculation utilities for pose analysis.

All functions accept None for a missing joint and return None instead of
guessing a value.
"""
import math

import numpy as np

# Two points closer than this on both axes are treated as the same point
POINT_TOLERANCE = 1e-3


def _coincide(a, b, tolerance=POINT_TOLERANCE):
    return abs(a[0] - b[0]) < tolerance and abs(a[1] - b[1]) < tolerance


def angle(a, b, c):
    """
    Calculate the angle ABC (at point b) in degrees.

    Args:
        a, b, c: Points as array-like (x, y) coordinates, or None if missing

    Returns:
        Angle in degrees (0-180), or None when any point is missing, two of
        the points coincide, or either vector has zero length
    """
    if a is None or b is None or c is None:
        return None

    if _coincide(a, b) or _coincide(b, c) or _coincide(a, c):
        return None

    a = np.array(a, dtype=float)
    b = np.array(b, dtype=float)
    c = np.array(c, dtype=float)

    ba = a - b
    bc = c - b

    nba = np.linalg.norm(ba)
    nbc = np.linalg.norm(bc)

    if nba <= 0.0 or nbc <= 0.0:
        return None

    cosv = float(np.dot(ba, bc) / (nba * nbc))
    cosv = max(-1.0, min(1.0, cosv))  # Clamp to valid range

    return float(np.degrees(np.arccos(cosv)))


def distance(a, b):
    """Euclidean distance between two points, or None if either is missing."""
    if a is None or b is None:
        return None
    return float(np.linalg.norm(np.array(b, dtype=float) - np.array(a, dtype=float)))


def midpoint(a, b):
    """Midpoint of two points as an (x, y) tuple, or None if either is missing."""
    if a is None or b is None:
        return None
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


def knee_angle(hip, knee, ankle):
    """Hip-knee-ankle angle. 180° is a straight leg, below 90° a deep squat."""
    return angle(hip, knee, ankle)


def hip_angle(shoulder, hip, knee):
    """Shoulder-hip-knee angle."""
    return angle(shoulder, hip, knee)


def elbow_angle(shoulder, elbow, wrist):
    """Shoulder-elbow-wrist angle."""
    return angle(shoulder, elbow, wrist)


def average_angle(left, right):
    """
    Mean of two optional angles.

    Uses whichever side is available; None only when both are missing.
    """
    if left is not None and right is not None:
        return (left + right) / 2.0
    return left if left is not None else right


def torso_lean(shoulder, hip):
    """
    Lean of the shoulder-to-hip line from vertical.

    Args:
        shoulder: Shoulder center (x, y)
        hip: Hip center (x, y)

    Returns:
        Absolute lean in degrees (0 = upright). 90 for a horizontal torso,
        None if either point is missing.
    """
    if shoulder is None or hip is None:
        return None

    dx = shoulder[0] - hip[0]
    dy = shoulder[1] - hip[1]
    if dy == 0:
        return 90.0

    return abs(math.degrees(math.atan(dx / dy)))


def shoulder_alignment(left_shoulder, right_shoulder):
    """
    Tilt of the shoulder line from horizontal in degrees (0 = level).

    Returns 90 when the shoulders are stacked vertically, None if either
    shoulder is missing.
    """
    if left_shoulder is None or right_shoulder is None:
        return None

    dx = right_shoulder[0] - left_shoulder[0]
    dy = right_shoulder[1] - left_shoulder[1]
    if dx == 0:
        return 90.0

    return abs(math.degrees(math.atan(dy / dx)))


def to_pixels(point, width, height):
    """Map a normalized point to integer pixel coordinates."""
    return int(point[0] * width), int(point[1] * height)
