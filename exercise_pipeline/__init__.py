"""
Exercise Detection Pipeline

4-Step Pipeline:
1. Frame Capture - Capture frames from webcam/video
2. Pose Estimation - YOLOv8-Pose or MediaPipe, 17 COCO keypoints
3. Exercise Classification - Per-frame squat / push-up rules on joint angles
4. Pipeline Controller - Real-time loop, latency/FPS, cancellation
"""

from .errors import (
    PipelineError,
    PipelineStartError,
    FrameSourceError,
    PoseEstimatorInitError,
    InvalidKeypointError,
    TransientInferenceFailure,
)
from .step1_frame_capture import FrameSource, WebcamCapture, VideoCapture, ImageCapture
from .step2_pose_estimation import (
    KeypointName, Keypoint, Pose, PoseEstimator, YoloPoseEstimator, MediaPipePoseEstimator
)
from .keypoint_access import KeypointIndex, lookup
from .coordinate_normalizer import (
    FrameContext,
    FrameContextBuilder,
    OrientationProvider,
    StaticOrientationProvider,
    FrameShapeOrientationProvider,
    normalize,
    normalize_pose,
)
from .step3_exercise_classifier import ExerciseClassifier, ExerciseClassification, ExerciseType
from .step4_pipeline_controller import (
    PipelineController, PipelineMetrics, PipelineState, Renderer, fps_from_latency
)

__all__ = [
    'PipelineError',
    'PipelineStartError',
    'FrameSourceError',
    'PoseEstimatorInitError',
    'InvalidKeypointError',
    'TransientInferenceFailure',
    'FrameSource',
    'WebcamCapture',
    'VideoCapture',
    'ImageCapture',
    'KeypointName',
    'Keypoint',
    'Pose',
    'PoseEstimator',
    'YoloPoseEstimator',
    'MediaPipePoseEstimator',
    'KeypointIndex',
    'lookup',
    'FrameContext',
    'FrameContextBuilder',
    'OrientationProvider',
    'StaticOrientationProvider',
    'FrameShapeOrientationProvider',
    'normalize',
    'normalize_pose',
    'ExerciseClassifier',
    'ExerciseClassification',
    'ExerciseType',
    'PipelineController',
    'PipelineMetrics',
    'PipelineState',
    'Renderer',
    'fps_from_latency',
]
