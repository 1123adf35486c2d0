"""
Pipeline exceptions.

Only start-up failures are fatal. Per-frame failures are raised by the
collaborators and contained by the PipelineController.
"""


class PipelineError(Exception):
    """Base class for all exercise pipeline errors."""


class PipelineStartError(PipelineError):
    """The pipeline could not enter RUNNING (source unavailable, already used)."""


class FrameSourceError(PipelineError):
    """A camera, video or image could not be opened or read."""


class PoseEstimatorInitError(PipelineError):
    """The pose-estimation model could not be loaded."""


class InvalidKeypointError(PipelineError, ValueError):
    """A landmark name outside the supported keypoint set reached the boundary."""


class TransientInferenceFailure(PipelineError):
    """Pose estimation failed for a single frame; the loop keeps running."""

    def __init__(self, frame_index: int, cause: BaseException):
        super().__init__(f"Pose estimation failed on frame {frame_index}: {cause!r}")
        self.frame_index = frame_index
        self.cause = cause
