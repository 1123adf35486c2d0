"""
Exercise Pose Detector Configuration
====================================

Central configuration file for all pipeline parameters.
"""

# =============================================================================
# Camera Settings
# =============================================================================
CAMERA_ID = 0
CAMERA_WIDTH = 640
CAMERA_HEIGHT = 480
CAMERA_FACING_BACK = False  # Desktop webcams face the user

# Devices whose preview is always mirrored (forces the horizontal flip)
ALWAYS_MIRROR = False

# Preview size in portrait orientation (width, height), pixels
DISPLAY_WIDTH = 480
DISPLAY_HEIGHT = 640

# =============================================================================
# Pose Estimator Settings
# =============================================================================
POSE_BACKEND = "yolo"  # Options: "yolo", "mediapipe"

YOLOV8_POSE_MODEL = "yolov8n-pose.pt"  # Options: yolov8n-pose.pt, yolov8s-pose.pt, yolov8m-pose.pt
YOLOV8_CONFIDENCE = 0.5  # Person detection confidence threshold
YOLOV8_DEVICE = None  # None=auto-detect, "cuda" or "cpu"

MEDIAPIPE_MODEL_COMPLEXITY = 0  # 0=lite, 1=full, 2=heavy
MIN_DETECTION_CONFIDENCE = 0.5
MIN_TRACKING_CONFIDENCE = 0.5

ENABLE_SMOOTHING = True

# Consecutive failed camera reads before the session is cancelled
MAX_READ_FAILURES = 5

# =============================================================================
# Keypoint Gates
# =============================================================================
MIN_KEYPOINT_SCORE = 0.3   # Render gate (strictly greater than)
MIN_SCORE_THRESHOLD = 0.2  # Classifier gate (greater than or equal)

# =============================================================================
# Exercise Classifier Thresholds (degrees)
# =============================================================================
KNEE_ANGLE_THRESHOLD = 90        # Squat: knee angle must be below
HIP_ANGLE_THRESHOLD = 120        # Squat: hip angle must be below
ELBOW_ANGLE_THRESHOLD = 160      # Push-up: elbow angle must be above
BODY_ALIGNMENT_THRESHOLD = 20    # Push-up: max deviation of shoulder-hip-ankle from 180

# =============================================================================
# Display Settings
# =============================================================================
WINDOW_NAME = "Exercise Pose Detector"
FONT_SCALE = 0.7
KEYPOINT_RADIUS = 4

# Colors (BGR format)
COLOR_GREEN = (0, 170, 0)
COLOR_ORANGE = (0, 165, 255)
COLOR_WHITE = (255, 255, 255)
COLOR_BLACK = (0, 0, 0)

# =============================================================================
# Logging
# =============================================================================
LOGGER_NAME = "exercise_pipeline"
LOG_LEVEL = "INFO"
