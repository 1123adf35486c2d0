"""
Step 4: Pipeline Controller
============================
The real-time loop: frame -> pose estimation -> latency/FPS -> classification
-> renderer, one frame at a time.

Frames are processed strictly in order and a new frame is only requested once
the previous cycle has finished. When inference is slower than the camera,
the frames in between are simply never read.

State machine:
    IDLE --start()--> RUNNING --cancel()/end of stream--> CANCELLED (terminal)
"""

import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, NamedTuple, Optional

import numpy as np

import config
from utils.angle_calculator import Point2D
from utils.logger import get_logger
from .coordinate_normalizer import (
    FrameContext, FrameContextBuilder, StaticOrientationProvider, normalize_pose
)
from .errors import PipelineStartError, TransientInferenceFailure
from .step1_frame_capture import FrameSource
from .step2_pose_estimation import Pose, PoseEstimator
from .step3_exercise_classifier import ExerciseClassification, ExerciseClassifier

logger = get_logger(__name__)


class PipelineState(Enum):
    """Lifecycle of a PipelineController."""
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"


class PipelineMetrics(NamedTuple):
    """Latency of the last pose-estimation call and the FPS derived from it."""
    last_latency_ms: Optional[int] = None
    fps: Optional[int] = None  # None = not measurable (latency below clock resolution)


def monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


def fps_from_latency(latency_ms: int) -> Optional[int]:
    """floor(1000 / latency); None when the latency rounds down to 0 ms."""
    if latency_ms <= 0:
        return None
    return 1000 // latency_ms


class Renderer(ABC):
    """Receives one notification per successfully processed frame."""

    @abstractmethod
    def on_frame_result(
        self,
        frame: np.ndarray,
        pose: Optional[Pose],
        metrics: PipelineMetrics,
        normalized_keypoints: List[Point2D],
        classifications: List[ExerciseClassification]
    ) -> None:
        pass

    def on_frame_skipped(self, frame: np.ndarray) -> None:
        """Called instead of ``on_frame_result`` when a frame fails to process."""
        pass


class PipelineController:
    """
    Single-use controller for one camera session.

    ``start()`` and ``cancel()`` are the only state mutators. ``cancel()`` may
    be called from any thread (or from the renderer); it never interrupts a
    call in flight, it is honored as soon as that call returns.
    """

    def __init__(
        self,
        frame_source: FrameSource,
        pose_estimator: PoseEstimator,
        renderer: Renderer,
        classifier: Optional[ExerciseClassifier] = None,
        frame_context: Optional[Callable[[np.ndarray], FrameContext]] = None,
        min_keypoint_score: float = config.MIN_KEYPOINT_SCORE,
        max_read_failures: int = config.MAX_READ_FAILURES,
        clock: Optional[Callable[[], int]] = None
    ):
        """
        Args:
            frame_source: Where frames come from
            pose_estimator: Frame -> poses
            renderer: Notified with each frame's result
            classifier: Exercise rules (default thresholds if None)
            frame_context: Builds the display context for a frame
            min_keypoint_score: Render gate for overlay keypoints
            max_read_failures: Consecutive failed reads before cancelling
            clock: Monotonic milliseconds; injectable for tests
        """
        self.frame_source = frame_source
        self.pose_estimator = pose_estimator
        self.renderer = renderer
        self.classifier = classifier or ExerciseClassifier()
        self.frame_context = frame_context or FrameContextBuilder(
            StaticOrientationProvider(portrait=False),
            display_width=config.DISPLAY_WIDTH,
            display_height=config.DISPLAY_HEIGHT,
            camera_facing_is_back=config.CAMERA_FACING_BACK,
            always_mirror=config.ALWAYS_MIRROR,
        )
        self.min_keypoint_score = min_keypoint_score
        self.max_read_failures = max_read_failures
        self._clock = clock or monotonic_ms
        self._read_failures = 0

        self._lock = threading.Lock()
        self._state = PipelineState.IDLE
        self._metrics = PipelineMetrics()
        self._thread: Optional[threading.Thread] = None

        # Counters
        self.frames_processed = 0
        self.frames_skipped = 0

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is PipelineState.RUNNING

    @property
    def metrics(self) -> PipelineMetrics:
        return self._metrics

    def start(self, threaded: bool = True) -> None:
        """
        Enter RUNNING and begin the loop.

        Args:
            threaded: Run the loop on a background thread. With False the
                loop runs in the caller's thread until it stops (needed when
                the renderer drives an OpenCV window).

        Raises:
            PipelineStartError: the controller was already used, or the frame
                source is not available. The state is left unchanged.
        """
        with self._lock:
            if self._state is not PipelineState.IDLE:
                raise PipelineStartError(
                    f"Pipeline is {self._state.value}; a controller can only be started once"
                )
            if not self.frame_source.is_opened():
                raise PipelineStartError("Frame source is not available")
            self._state = PipelineState.RUNNING

        logger.info("Pipeline started")
        if threaded:
            self._thread = threading.Thread(
                target=self._run_loop, name="exercise-pipeline", daemon=True
            )
            self._thread.start()
        else:
            self._run_loop()

    def cancel(self) -> None:
        """Stop scheduling iterations. Idempotent."""
        with self._lock:
            if self._state is PipelineState.CANCELLED:
                return
            self._state = PipelineState.CANCELLED
        logger.info("Pipeline cancelled")

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the background loop; True if it has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run_loop(self) -> None:
        try:
            while self.run_iteration():
                pass
        finally:
            # Leaving the loop for any reason ends the session
            self.cancel()
            logger.info("Pipeline stopped after %d frames (%d skipped)",
                        self.frames_processed, self.frames_skipped)

    def run_iteration(self) -> bool:
        """
        Run one full cycle.

        Returns:
            True if another iteration should be scheduled.
        """
        if not self.is_running:
            return False

        try:
            frame = self.frame_source.next_frame()
        except Exception:
            self._read_failures += 1
            if self._read_failures >= self.max_read_failures:
                logger.exception("Frame source failed %d times in a row, stopping pipeline",
                                 self._read_failures)
                self.cancel()
                return False
            logger.warning("Frame read failed (%d/%d), retrying",
                           self._read_failures, self.max_read_failures, exc_info=True)
            return self.is_running
        self._read_failures = 0

        if frame is None:
            logger.info("Frame source exhausted")
            self.cancel()
            return False

        try:
            return self._process_frame(frame)
        finally:
            self.frame_source.release_frame(frame)

    def _process_frame(self, frame: np.ndarray) -> bool:
        # Cancelled while waiting for the frame
        if not self.is_running:
            return False

        frame_index = self.frames_processed + self.frames_skipped + 1
        start = self._clock()
        try:
            poses = self.pose_estimator.estimate(frame, start)
        except Exception as e:
            failure = TransientInferenceFailure(frame_index, e)
            logger.warning("%s; skipping frame", failure)
            return self._skip_frame(frame)

        latency_ms = self._clock() - start
        self._metrics = PipelineMetrics(latency_ms, fps_from_latency(latency_ms))

        # Cancelled during inference: drop this frame's result
        if not self.is_running:
            return False

        pose = poses[0] if poses else None
        try:
            if pose is not None:
                classifications = self.classifier.classify(pose)
                normalized = normalize_pose(pose, self.frame_context(frame), self.min_keypoint_score)
            else:
                classifications = []
                normalized = []
        except Exception:
            logger.exception("Processing failed on frame %d; skipping frame", frame_index)
            return self._skip_frame(frame)

        self.frames_processed += 1
        self._notify_renderer(frame, pose, normalized, classifications)
        return self.is_running

    def _skip_frame(self, frame: np.ndarray) -> bool:
        self.frames_skipped += 1
        try:
            self.renderer.on_frame_skipped(frame)
        except Exception:
            logger.exception("Renderer failed on skipped frame")
        return self.is_running

    def _notify_renderer(self, frame, pose, normalized, classifications) -> None:
        try:
            self.renderer.on_frame_result(frame, pose, self._metrics, normalized, classifications)
        except Exception:
            logger.exception("Renderer failed on frame %d", self.frames_processed)
