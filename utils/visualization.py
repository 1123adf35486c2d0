"""
Utils: Visualization
Drawing helpers and the OpenCV window renderer for the exercise pipeline.
"""

import cv2
import numpy as np
from typing import Callable, List, Optional

import config
from exercise_pipeline.coordinate_normalizer import FrameContextBuilder
from exercise_pipeline.step3_exercise_classifier import ExerciseClassification
from exercise_pipeline.step4_pipeline_controller import PipelineMetrics, Renderer
from utils.angle_calculator import Point2D
from utils.logger import get_logger

logger = get_logger(__name__)

EXERCISE_LABELS = {
    'squat': "Squat",
    'pushup': "Push-up",
}


def draw_keypoints(frame: np.ndarray, points: List[Point2D]) -> np.ndarray:
    """Draw keypoints as filled green circles with a white outline."""
    frame_copy = frame.copy()
    for point in points:
        center = (int(round(point.x)), int(round(point.y)))
        cv2.circle(frame_copy, center, config.KEYPOINT_RADIUS, config.COLOR_GREEN, -1)
        cv2.circle(frame_copy, center, config.KEYPOINT_RADIUS, config.COLOR_WHITE, 2)
    return frame_copy


def format_fps(metrics: PipelineMetrics) -> str:
    """FPS text; ``--`` when the latency was too small to measure."""
    if metrics.fps is None:
        return "FPS: --"
    return f"FPS: {metrics.fps}"


def draw_fps(frame: np.ndarray, metrics: PipelineMetrics) -> np.ndarray:
    """Draw FPS counter on a light box in the top-left corner."""
    frame_copy = frame.copy()
    cv2.rectangle(frame_copy, (10, 10), (110, 42), config.COLOR_WHITE, -1)
    cv2.putText(frame_copy, format_fps(metrics), (18, 32),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, config.COLOR_BLACK, 1)
    return frame_copy


def draw_classifications(
    frame: np.ndarray,
    classifications: List[ExerciseClassification]
) -> np.ndarray:
    """
    Draw one status line per exercise at the bottom of the frame.

    Args:
        frame: Frame to draw on
        classifications: Results of the current frame (empty = no person)
    """
    frame_copy = frame.copy()
    h, w = frame_copy.shape[:2]

    if not classifications:
        cv2.putText(frame_copy, "No person detected", (15, h - 20),
                    cv2.FONT_HERSHEY_SIMPLEX, config.FONT_SCALE, config.COLOR_ORANGE, 2)
        return frame_copy

    box_top = h - 30 * len(classifications) - 15
    cv2.rectangle(frame_copy, (5, box_top), (w - 5, h - 5), config.COLOR_BLACK, -1)

    y = box_top + 25
    for result in classifications:
        label = EXERCISE_LABELS.get(result.exercise.value, result.exercise.value)
        if result.detected:
            text = f"{label} detected ({result.side})"
            color = config.COLOR_GREEN
        else:
            text = f"No {label.lower()}"
            color = config.COLOR_WHITE
        cv2.putText(frame_copy, text, (15, y),
                    cv2.FONT_HERSHEY_SIMPLEX, config.FONT_SCALE, color, 2)
        y += 30

    return frame_copy


class OpenCVRenderer(Renderer):
    """
    Show the camera preview with the keypoint overlay in an OpenCV window.

    Q or ESC calls ``on_quit`` (usually ``PipelineController.cancel``).
    """

    QUIT_KEYS = (ord('q'), ord('Q'), 27)

    def __init__(self,
                 frame_context: FrameContextBuilder,
                 window_name: str = config.WINDOW_NAME,
                 on_quit: Optional[Callable[[], None]] = None):
        self.frame_context = frame_context
        self.window_name = window_name
        self.on_quit = on_quit
        self.last_classifications: List[ExerciseClassification] = []

    def render(self, frame, metrics, normalized_keypoints, classifications) -> np.ndarray:
        """Compose the preview image in display space."""
        ctx = self.frame_context(frame)
        display_w, display_h = ctx.display_size
        preview = cv2.resize(frame, (int(display_w), int(display_h)))
        # Keypoints were flipped into display space; flip the image to match
        if ctx.flip_x:
            preview = cv2.flip(preview, 1)

        preview = draw_keypoints(preview, normalized_keypoints)
        preview = draw_fps(preview, metrics)
        return draw_classifications(preview, classifications)

    def on_frame_result(self, frame, pose, metrics, normalized_keypoints, classifications) -> None:
        for result in classifications:
            if result.detected and result not in self.last_classifications:
                logger.info("%s detected (%s side)", result.exercise.value, result.side)
        self.last_classifications = list(classifications)

        cv2.imshow(self.window_name, self.render(frame, metrics, normalized_keypoints, classifications))
        self.poll_keys()

    def on_frame_skipped(self, frame) -> None:
        # Keep the window responsive while inference keeps failing
        self.poll_keys()

    def poll_keys(self) -> None:
        """Pump the OpenCV event loop; Q or ESC calls ``on_quit``."""
        key = cv2.waitKey(1) & 0xFF
        if key in self.QUIT_KEYS and self.on_quit is not None:
            self.on_quit()

    def close(self) -> None:
        cv2.destroyAllWindows()
