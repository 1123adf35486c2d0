"""
Keypoint Access Layer
Name-indexed view over a Pose with a confidence gate.

This is the only place low-confidence detections are filtered out for the
classifier: a keypoint below the gate is reported as absent, never as a
keypoint at (0, 0).
"""

from typing import Dict, Optional

from .step2_pose_estimation import Keypoint, KeypointName, Pose


class KeypointIndex:
    """
    Mapping KeypointName -> Keypoint for one pose.

    If a name repeats, the last occurrence in the pose wins.
    """

    def __init__(self, pose: Pose, min_score: float):
        self.min_score = min_score
        self._by_name: Dict[KeypointName, Keypoint] = {}
        for keypoint in pose.keypoints:
            self._by_name[keypoint.name] = keypoint

    def get(self, name) -> Optional[Keypoint]:
        """Return the keypoint if present and ``score >= min_score``."""
        keypoint = self._by_name.get(KeypointName.parse(name))
        if keypoint is None or keypoint.score < self.min_score:
            return None
        return keypoint

    def __contains__(self, name) -> bool:
        return self.get(name) is not None


def lookup(pose: Pose, name, min_score: float) -> Optional[Keypoint]:
    """One-off gated lookup of a single landmark."""
    return KeypointIndex(pose, min_score).get(name)
