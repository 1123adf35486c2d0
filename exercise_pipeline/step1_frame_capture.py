"""
Step 1: Frame Capture
Captures frames from webcam, video file or a single image.
"""

import cv2
import numpy as np
from abc import ABC, abstractmethod
from typing import Optional

from utils.logger import get_logger

logger = get_logger(__name__)


class FrameSource(ABC):
    """
    Abstract frame source consumed by the PipelineController.

    ``next_frame`` blocks until a frame is available and returns None once the
    stream has ended. Every frame handed out must be given back through
    ``release_frame``.
    """

    @abstractmethod
    def next_frame(self) -> Optional[np.ndarray]:
        """Read the next BGR frame of shape (H, W, 3), or None at end of stream."""
        pass

    def release_frame(self, frame: np.ndarray) -> None:
        """Give a frame back. OpenCV frames are plain arrays, nothing to free."""
        pass

    @abstractmethod
    def is_opened(self) -> bool:
        """Check if capture is opened."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Release the underlying device or file."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class WebcamCapture(FrameSource):
    """Capture frames from webcam."""

    def __init__(self, camera_id: int = 0, width: int = 640, height: int = 480):
        self.camera_id = camera_id
        self.width = width
        self.height = height
        self.cap = cv2.VideoCapture(camera_id)
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        if not self.cap.isOpened():
            logger.error("Cannot open camera %s", camera_id)

    def next_frame(self) -> Optional[np.ndarray]:
        ret, frame = self.cap.read()
        if not ret:
            return None
        return frame

    def is_opened(self) -> bool:
        return self.cap.isOpened()

    def release(self) -> None:
        if self.cap.isOpened():
            self.cap.release()


class VideoCapture(FrameSource):
    """Capture frames from video file."""

    def __init__(self, video_path: str):
        self.video_path = video_path
        self.cap = cv2.VideoCapture(video_path)
        if not self.cap.isOpened():
            logger.error("Cannot open video %s", video_path)

    def next_frame(self) -> Optional[np.ndarray]:
        ret, frame = self.cap.read()
        if not ret:
            return None
        return frame

    def is_opened(self) -> bool:
        return self.cap.isOpened()

    def release(self) -> None:
        self.cap.release()


class ImageCapture(FrameSource):
    """Serve a single image once (for testing thresholds on a still)."""

    def __init__(self, image_path: str):
        self.image_path = image_path
        self.image = cv2.imread(image_path)
        self.read_count = 0
        if self.image is None:
            logger.error("Cannot read image %s", image_path)

    def next_frame(self) -> Optional[np.ndarray]:
        if self.read_count == 0 and self.image is not None:
            self.read_count += 1
            return self.image.copy()
        return None

    def is_opened(self) -> bool:
        return self.image is not None and self.read_count == 0

    def release(self) -> None:
        self.image = None
