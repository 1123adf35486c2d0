"""
Exercise Pose Detector - Real-time Squat / Push-up Detection
=============================================================

4-Step Pipeline:
1. Frame Capture - Get frames from webcam/video
2. Pose Estimation - YOLOv8-Pose or MediaPipe (17 COCO keypoints)
3. Exercise Classification - Squat / push-up rules on joint angles
4. Pipeline Controller - One frame at a time, latency -> FPS

Usage:
    python main.py                          # Webcam
    python main.py --video path.mp4         # Video file
    python main.py --image path.jpg         # Single image
    python main.py --backend mediapipe      # MediaPipe instead of YOLOv8

Controls:
    Q / ESC - Quit
"""

import argparse
import sys
from pathlib import Path

import cv2

import config
from exercise_pipeline import (
    ExerciseClassifier,
    FrameContextBuilder,
    FrameShapeOrientationProvider,
    FrameSourceError,
    ImageCapture,
    MediaPipePoseEstimator,
    PipelineController,
    PipelineError,
    StaticOrientationProvider,
    VideoCapture,
    WebcamCapture,
    YoloPoseEstimator,
)
from utils.logger import set_level
from utils.visualization import OpenCVRenderer


def build_frame_source(args):
    """Step 1: pick the frame source from the CLI arguments."""
    for path in (args.video, args.image):
        if path and not Path(path).exists():
            raise FrameSourceError(f"File not found: {path}")

    if args.image:
        return ImageCapture(args.image)
    if args.video:
        return VideoCapture(args.video)
    return WebcamCapture(
        camera_id=args.camera,
        width=config.CAMERA_WIDTH,
        height=config.CAMERA_HEIGHT
    )


def build_pose_estimator(args):
    """Step 2: load the pose model."""
    if args.backend == 'mediapipe':
        return MediaPipePoseEstimator(
            model_complexity=config.MEDIAPIPE_MODEL_COMPLEXITY,
            enable_smoothing=args.smoothing,
            min_detection_confidence=config.MIN_DETECTION_CONFIDENCE,
            min_tracking_confidence=config.MIN_TRACKING_CONFIDENCE
        )
    return YoloPoseEstimator(
        model_path=args.model,
        confidence_threshold=config.YOLOV8_CONFIDENCE,
        device=config.YOLOV8_DEVICE,
        enable_smoothing=args.smoothing
    )


def build_classifier():
    """Step 3: exercise rules with thresholds from config."""
    return ExerciseClassifier(
        knee_angle_threshold=config.KNEE_ANGLE_THRESHOLD,
        hip_angle_threshold=config.HIP_ANGLE_THRESHOLD,
        elbow_angle_threshold=config.ELBOW_ANGLE_THRESHOLD,
        body_alignment_threshold=config.BODY_ALIGNMENT_THRESHOLD,
        min_score=config.MIN_SCORE_THRESHOLD
    )


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Exercise Pose Detector - Real-time squat / push-up detection',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Input source
    input_group = parser.add_mutually_exclusive_group()
    input_group.add_argument('--video', type=str, help='Path to video file')
    input_group.add_argument('--image', type=str, help='Path to image file')

    # Camera settings
    parser.add_argument('--camera', type=int, default=config.CAMERA_ID,
                        help='Camera ID for webcam mode')
    parser.add_argument('--back-camera', action='store_true',
                        default=config.CAMERA_FACING_BACK,
                        help='Camera faces away from the user (mirrors the overlay)')
    parser.add_argument('--auto-orientation', action='store_true',
                        help='Treat frames taller than wide as portrait')

    # Model settings
    parser.add_argument('--backend', choices=['yolo', 'mediapipe'],
                        default=config.POSE_BACKEND, help='Pose estimation backend')
    parser.add_argument('--model', type=str, default=config.YOLOV8_POSE_MODEL,
                        help='YOLOv8-Pose weights')
    parser.add_argument('--no-smoothing', dest='smoothing', action='store_false',
                        default=config.ENABLE_SMOOTHING,
                        help='Disable keypoint smoothing (MediaPipe only)')

    parser.add_argument('--verbose', action='store_true', help='Debug logging')

    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_args()
    if args.verbose:
        set_level('DEBUG')

    print("Initializing Exercise Pose Detector...")
    frame_source = None
    try:
        print("  [1/4] Opening frame source...")
        frame_source = build_frame_source(args)

        print(f"  [2/4] Loading pose model ({args.backend})...")
        pose_estimator = build_pose_estimator(args)
    except PipelineError as e:
        print(f"Error: {e}")
        if frame_source is not None:
            frame_source.release()
        sys.exit(1)

    print("  [3/4] Initializing exercise classifier...")
    classifier = build_classifier()

    orientation = (FrameShapeOrientationProvider() if args.auto_orientation
                   else StaticOrientationProvider(portrait=False))
    frame_context = FrameContextBuilder(
        orientation,
        display_width=config.DISPLAY_WIDTH,
        display_height=config.DISPLAY_HEIGHT,
        camera_facing_is_back=args.back_camera,
        always_mirror=config.ALWAYS_MIRROR
    )

    print("  [4/4] Starting pipeline...")
    renderer = OpenCVRenderer(frame_context)
    controller = PipelineController(
        frame_source,
        pose_estimator,
        renderer,
        classifier=classifier,
        frame_context=frame_context,
        min_keypoint_score=config.MIN_KEYPOINT_SCORE
    )
    renderer.on_quit = controller.cancel
    print("Pipeline ready! Press Q or ESC to quit\n")

    try:
        # OpenCV windows must be driven from the main thread
        controller.start(threaded=False)
        if args.image:
            print("Press ANY KEY to close the window")
            cv2.waitKey(0)
    except PipelineError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        controller.cancel()
    finally:
        renderer.close()
        frame_source.release()
        pose_estimator.close()


if __name__ == '__main__':
    main()
