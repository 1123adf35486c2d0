"""
Coordinate Normalizer
Maps raw inference-space keypoints onto the display canvas.

Display coordinates are only for drawing the overlay. The classifier always
works on raw keypoints, so canvas size, flips and rotations never change a
classification.
"""

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Tuple

from utils.angle_calculator import Point2D
from .step2_pose_estimation import Keypoint, Pose


@dataclass(frozen=True)
class FrameContext:
    """Per-frame parameters needed to place keypoints on the display."""
    orientation_is_portrait: bool
    camera_facing_is_back: bool
    output_width: float    # Size of the image the model saw
    output_height: float
    display_width: float   # Preview size in portrait orientation
    display_height: float
    always_mirror: bool = False

    def __post_init__(self):
        for field_name in ('output_width', 'output_height', 'display_width', 'display_height'):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"{field_name} must be positive, got {getattr(self, field_name)}")

    @property
    def flip_x(self) -> bool:
        return self.camera_facing_is_back or self.always_mirror

    @property
    def display_size(self) -> Tuple[float, float]:
        """(width, height) of the canvas in the current orientation."""
        if self.orientation_is_portrait:
            return self.display_width, self.display_height
        return self.display_height, self.display_width


def normalize(keypoint: Keypoint, ctx: FrameContext) -> Point2D:
    """Raw keypoint -> display point (flip, then scale to the canvas)."""
    x = ctx.output_width - keypoint.x if ctx.flip_x else keypoint.x
    display_w, display_h = ctx.display_size
    return Point2D(
        x=x / ctx.output_width * display_w,
        y=keypoint.y / ctx.output_height * display_h,
    )


def normalize_pose(pose: Pose, ctx: FrameContext, min_score: float) -> List[Point2D]:
    """Display points for every keypoint scoring strictly above ``min_score``."""
    return [normalize(k, ctx) for k in pose.keypoints if k.score > min_score]


class OrientationProvider(ABC):
    """Tells the pipeline whether the view is currently in portrait."""

    @abstractmethod
    def is_portrait(self, frame: np.ndarray) -> bool:
        pass


class StaticOrientationProvider(OrientationProvider):
    """Fixed orientation, e.g. a desktop webcam."""

    def __init__(self, portrait: bool = False):
        self.portrait = portrait

    def is_portrait(self, frame: np.ndarray) -> bool:
        return self.portrait


class FrameShapeOrientationProvider(OrientationProvider):
    """Portrait whenever the frame is taller than it is wide (rotated phone feeds)."""

    def is_portrait(self, frame: np.ndarray) -> bool:
        h, w = frame.shape[:2]
        return h > w


class FrameContextBuilder:
    """
    Assemble the FrameContext for a frame.

    The output size is the frame's own size, since frames go to the model
    unresized. Orientation is read from the provider on every call.
    """

    def __init__(self,
                 orientation_provider: OrientationProvider,
                 display_width: float,
                 display_height: float,
                 camera_facing_is_back: bool = False,
                 always_mirror: bool = False):
        self.orientation_provider = orientation_provider
        self.display_width = display_width
        self.display_height = display_height
        self.camera_facing_is_back = camera_facing_is_back
        self.always_mirror = always_mirror

    def __call__(self, frame: np.ndarray) -> FrameContext:
        h, w = frame.shape[:2]
        return FrameContext(
            orientation_is_portrait=self.orientation_provider.is_portrait(frame),
            camera_facing_is_back=self.camera_facing_is_back,
            output_width=w,
            output_height=h,
            display_width=self.display_width,
            display_height=self.display_height,
            always_mirror=self.always_mirror,
        )
