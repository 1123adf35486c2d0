"""
Step 3: Exercise Classification
================================
Rule-based, per-frame detection of squats and push-ups from joint angles.

Each rule is evaluated on the left and the right side of the body; an
exercise is detected if either side satisfies it. Nothing is kept between
frames, so one classifier instance can be shared across threads.
"""

from enum import Enum
from typing import List, NamedTuple, Optional

from utils.angle_calculator import angle_at_vertex, deviation_from_straight
from .keypoint_access import KeypointIndex
from .step2_pose_estimation import KeypointName, Pose


class ExerciseType(Enum):
    """Exercises the classifier knows about."""
    SQUAT = "squat"
    PUSHUP = "pushup"


class ExerciseClassification(NamedTuple):
    """Result of one rule set over one pose."""
    exercise: ExerciseType
    detected: bool
    side: Optional[str] = None  # First side that satisfied the rule


# Landmarks per body side
SIDES = {
    'left': {
        'shoulder': KeypointName.LEFT_SHOULDER,
        'elbow': KeypointName.LEFT_ELBOW,
        'wrist': KeypointName.LEFT_WRIST,
        'hip': KeypointName.LEFT_HIP,
        'knee': KeypointName.LEFT_KNEE,
        'ankle': KeypointName.LEFT_ANKLE,
    },
    'right': {
        'shoulder': KeypointName.RIGHT_SHOULDER,
        'elbow': KeypointName.RIGHT_ELBOW,
        'wrist': KeypointName.RIGHT_WRIST,
        'hip': KeypointName.RIGHT_HIP,
        'knee': KeypointName.RIGHT_KNEE,
        'ankle': KeypointName.RIGHT_ANKLE,
    },
}


class ExerciseClassifier:
    """
    Classify a single pose snapshot.

    Thresholds are in degrees. All comparisons are strict, and an angle that
    cannot be computed never satisfies a condition.
    """

    # Default thresholds (degrees)
    KNEE_ANGLE_THRESHOLD = 90
    HIP_ANGLE_THRESHOLD = 120
    ELBOW_ANGLE_THRESHOLD = 160
    BODY_ALIGNMENT_THRESHOLD = 20
    MIN_SCORE_THRESHOLD = 0.2

    def __init__(self,
                 knee_angle_threshold: float = KNEE_ANGLE_THRESHOLD,
                 hip_angle_threshold: float = HIP_ANGLE_THRESHOLD,
                 elbow_angle_threshold: float = ELBOW_ANGLE_THRESHOLD,
                 body_alignment_threshold: float = BODY_ALIGNMENT_THRESHOLD,
                 min_score: float = MIN_SCORE_THRESHOLD):
        """
        Args:
            knee_angle_threshold: Squat knee angle must be below this
            hip_angle_threshold: Squat hip angle must be below this
            elbow_angle_threshold: Push-up elbow angle must be above this
            body_alignment_threshold: Max shoulder-hip-ankle deviation from straight
            min_score: Keypoint confidence gate
        """
        self.knee_angle_threshold = knee_angle_threshold
        self.hip_angle_threshold = hip_angle_threshold
        self.elbow_angle_threshold = elbow_angle_threshold
        self.body_alignment_threshold = body_alignment_threshold
        self.min_score = min_score

    def classify(self, pose: Pose) -> List[ExerciseClassification]:
        """Run every rule set; returns [squat, push-up]."""
        index = KeypointIndex(pose, self.min_score)
        return [self._detect_squat(index), self._detect_pushup(index)]

    def detect_squat(self, pose: Pose) -> ExerciseClassification:
        return self._detect_squat(KeypointIndex(pose, self.min_score))

    def detect_pushup(self, pose: Pose) -> ExerciseClassification:
        return self._detect_pushup(KeypointIndex(pose, self.min_score))

    def _detect_squat(self, index: KeypointIndex) -> ExerciseClassification:
        for side, names in SIDES.items():
            if self._squat_side(index, names):
                return ExerciseClassification(ExerciseType.SQUAT, True, side)
        return ExerciseClassification(ExerciseType.SQUAT, False)

    def _detect_pushup(self, index: KeypointIndex) -> ExerciseClassification:
        for side, names in SIDES.items():
            if self._pushup_side(index, names):
                return ExerciseClassification(ExerciseType.PUSHUP, True, side)
        return ExerciseClassification(ExerciseType.PUSHUP, False)

    def _squat_side(self, index: KeypointIndex, names: dict) -> bool:
        hip = index.get(names['hip'])
        knee = index.get(names['knee'])
        ankle = index.get(names['ankle'])
        shoulder = index.get(names['shoulder'])

        if hip is None or knee is None or ankle is None:
            return False

        knee_angle = angle_at_vertex(hip, knee, ankle)
        # Without a shoulder the hip angle is unknown, so the side fails
        hip_angle = angle_at_vertex(shoulder, hip, knee) if shoulder is not None else None

        return (
            knee_angle is not None and knee_angle < self.knee_angle_threshold and
            hip_angle is not None and hip_angle < self.hip_angle_threshold
        )

    def _pushup_side(self, index: KeypointIndex, names: dict) -> bool:
        points = {part: index.get(name) for part, name in names.items()}
        # Knee is only a presence gate
        if any(point is None for point in points.values()):
            return False

        elbow_angle = angle_at_vertex(points['shoulder'], points['elbow'], points['wrist'])
        return (
            elbow_angle is not None and elbow_angle > self.elbow_angle_threshold and
            self._body_aligned(points['shoulder'], points['hip'], points['ankle'])
        )

    def _body_aligned(self, shoulder, hip, ankle) -> bool:
        """Plank check: shoulder-hip-ankle close to a straight line."""
        deviation = deviation_from_straight(angle_at_vertex(shoulder, hip, ankle))
        return deviation is not None and deviation < self.body_alignment_threshold
