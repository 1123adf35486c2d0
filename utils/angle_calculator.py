"""
Angle Calculator Utility
Calculates joint angles from planar keypoint coordinates.
"""

import numpy as np
from typing import NamedTuple, Optional


class Point2D(NamedTuple):
    """A planar coordinate. Keypoints are accepted anywhere a Point2D is."""
    x: float
    y: float


def angle_at_vertex(a, vertex, c) -> Optional[float]:
    """
    Calculate the angle at ``vertex`` formed by the rays to ``a`` and ``c``.

    Args:
        a: First point (anything with ``x`` and ``y``)
        vertex: Vertex point where the angle is measured
        c: Second point

    Returns:
        Angle in degrees [0, 180], or None when ``a`` or ``c`` coincides
        with the vertex (zero-length ray).
    """
    va = np.array([a.x - vertex.x, a.y - vertex.y], dtype=np.float64)
    vc = np.array([c.x - vertex.x, c.y - vertex.y], dtype=np.float64)

    magnitude = np.linalg.norm(va) * np.linalg.norm(vc)
    if magnitude == 0:
        return None

    cos_angle = np.dot(va, vc) / magnitude

    # Clamp to valid range for arccos (collinear points can overshoot by an ulp)
    cos_angle = np.clip(cos_angle, -1.0, 1.0)

    return float(np.degrees(np.arccos(cos_angle)))


def deviation_from_straight(angle: Optional[float]) -> Optional[float]:
    """How far a vertex angle is from a straight line (180 degrees)."""
    if angle is None:
        return None
    return abs(angle - 180.0)
