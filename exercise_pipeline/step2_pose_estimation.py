"""
Step 2: Pose Estimation
Estimates body keypoints with YOLOv8-Pose or MediaPipe Pose.

Both backends are projected onto the 17 COCO keypoint names, so everything
downstream works with one closed set of landmarks.
"""

import cv2
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .errors import InvalidKeypointError, PoseEstimatorInitError
from utils.logger import get_logger

logger = get_logger(__name__)


class KeypointName(str, Enum):
    """COCO keypoint names (17 keypoints), in model output order."""
    NOSE = "nose"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"

    @classmethod
    def parse(cls, name) -> "KeypointName":
        """Validate a raw landmark name coming out of a model."""
        try:
            return cls(name)
        except ValueError:
            raise InvalidKeypointError(f"Unknown keypoint name: {name!r}") from None


@dataclass(frozen=True)
class Keypoint:
    """
    A single landmark in raw inference space (pixels of the model input).

    ``score`` is the detection confidence in [0, 1].
    """
    name: KeypointName
    x: float
    y: float
    score: float

    def __post_init__(self):
        if not isinstance(self.name, KeypointName):
            object.__setattr__(self, 'name', KeypointName.parse(self.name))


@dataclass(frozen=True)
class Pose:
    """All keypoints of one detected subject in one frame."""
    keypoints: Tuple[Keypoint, ...]
    score: float = 0.0  # Person detection confidence

    def __post_init__(self):
        object.__setattr__(self, 'keypoints', tuple(self.keypoints))


def build_pose(rows: Iterable, names: Iterable[KeypointName], score: float = 0.0) -> Pose:
    """
    Build a Pose from model output rows of (x, y, confidence).

    Args:
        rows: Per-keypoint (x, y, conf) in pixels
        names: Landmark name for each row, same order
        score: Detection confidence of the whole person
    """
    keypoints = [
        Keypoint(name=name, x=float(row[0]), y=float(row[1]), score=float(row[2]))
        for name, row in zip(names, rows)
    ]
    return Pose(keypoints=tuple(keypoints), score=float(score))


class PoseEstimator(ABC):
    """
    Black-box pose model: frame in, poses out.

    ``estimate`` may block for the inference latency and may return an empty
    list when nobody is in view. Poses are ordered by detection confidence,
    the primary subject first.
    """

    @abstractmethod
    def estimate(self, frame: np.ndarray, timestamp_ms: int) -> List[Pose]:
        pass

    def close(self) -> None:
        """Release model resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class YoloPoseEstimator(PoseEstimator):
    """Estimate poses with YOLOv8-Pose (person detection + keypoints in one step)."""

    LANDMARK_NAMES = list(KeypointName)

    def __init__(
        self,
        model_path: str = "yolov8n-pose.pt",
        confidence_threshold: float = 0.5,
        device: Optional[str] = None,
        enable_smoothing: bool = False
    ):
        """
        Initialize YOLOv8-Pose estimator.

        Args:
            model_path: Path to YOLOv8-Pose model (nano/small/medium)
            confidence_threshold: Minimum person confidence for a pose to count
            device: 'cuda' or 'cpu' (auto-detect if None)
            enable_smoothing: Not supported by YOLOv8, logged and ignored
        """
        self.model_path = model_path
        self.confidence_threshold = confidence_threshold
        self.device = device
        self.model = None
        if enable_smoothing:
            logger.warning("Keypoint smoothing is not available for YOLOv8-Pose, ignoring")
        self._init_yolo()

    def _init_yolo(self) -> None:
        """Load the YOLOv8-Pose model."""
        try:
            from ultralytics import YOLO
            import torch

            if self.device is None:
                self.device = 'cuda' if torch.cuda.is_available() else 'cpu'

            self.model = YOLO(self.model_path)
        except Exception as e:
            raise PoseEstimatorInitError(
                f"Failed to load YOLOv8-Pose model {self.model_path}: {e}"
            ) from e

        logger.info("Using YOLOv8-Pose (%s) on %s, %d keypoints",
                    self.model_path, self.device.upper(), len(self.LANDMARK_NAMES))

    def estimate(self, frame: np.ndarray, timestamp_ms: int) -> List[Pose]:
        results = self.model(frame, verbose=False, device=self.device)

        poses = []
        for result in results:
            if result.keypoints is None or result.boxes is None:
                continue

            # keypoints.data shape: [num_people, 17, 3] where 3 = x, y, conf
            keypoints = result.keypoints.data.cpu().numpy()
            confidences = result.boxes.conf.cpu().numpy()

            for person_kps, conf in zip(keypoints, confidences):
                if conf < self.confidence_threshold:
                    continue
                poses.append(build_pose(person_kps, self.LANDMARK_NAMES, score=conf))

        poses.sort(key=lambda pose: pose.score, reverse=True)
        return poses


class MediaPipePoseEstimator(PoseEstimator):
    """Estimate a single pose with MediaPipe Pose, mapped onto COCO names."""

    # MediaPipe landmark index for each COCO keypoint
    COCO_FROM_MEDIAPIPE = {
        KeypointName.NOSE: 0,
        KeypointName.LEFT_EYE: 2,
        KeypointName.RIGHT_EYE: 5,
        KeypointName.LEFT_EAR: 7,
        KeypointName.RIGHT_EAR: 8,
        KeypointName.LEFT_SHOULDER: 11,
        KeypointName.RIGHT_SHOULDER: 12,
        KeypointName.LEFT_ELBOW: 13,
        KeypointName.RIGHT_ELBOW: 14,
        KeypointName.LEFT_WRIST: 15,
        KeypointName.RIGHT_WRIST: 16,
        KeypointName.LEFT_HIP: 23,
        KeypointName.RIGHT_HIP: 24,
        KeypointName.LEFT_KNEE: 25,
        KeypointName.RIGHT_KNEE: 26,
        KeypointName.LEFT_ANKLE: 27,
        KeypointName.RIGHT_ANKLE: 28,
    }

    def __init__(self,
                 model_complexity: int = 0,
                 enable_smoothing: bool = True,
                 min_detection_confidence: float = 0.5,
                 min_tracking_confidence: float = 0.5):
        try:
            import mediapipe as mp

            self.pose = mp.solutions.pose.Pose(
                static_image_mode=False,  # Video mode for tracking + smoothing
                model_complexity=model_complexity,
                smooth_landmarks=enable_smoothing,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence
            )
        except Exception as e:
            raise PoseEstimatorInitError(f"Failed to initialize MediaPipe Pose: {e}") from e

        logger.info("Using MediaPipe Pose (complexity=%d, smoothing=%s)",
                    model_complexity, enable_smoothing)

    def estimate(self, frame: np.ndarray, timestamp_ms: int) -> List[Pose]:
        # MediaPipe needs RGB
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False
        results = self.pose.process(rgb_frame)

        if not results.pose_landmarks:
            return []

        h, w = frame.shape[:2]
        landmarks = results.pose_landmarks.landmark
        rows = [
            (landmarks[idx].x * w, landmarks[idx].y * h, landmarks[idx].visibility)
            for idx in self.COCO_FROM_MEDIAPIPE.values()
        ]
        return [build_pose(rows, self.COCO_FROM_MEDIAPIPE.keys())]

    def close(self) -> None:
        self.pose.close()
