"""
Utils: Logger
Shared logger for the exercise pipeline modules.
"""

import logging
import sys

import config

# --------------------------------------------------------
# One root logger for the project, children per module
# --------------------------------------------------------
logger = logging.getLogger(config.LOGGER_NAME)
logger.setLevel(config.LOG_LEVEL)

# If no handlers exist, add one (avoid duplicate logs)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(handler)

logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Return a child of the project logger, e.g. ``exercise_pipeline.step4``."""
    short_name = name.rsplit('.', 1)[-1]
    return logger.getChild(short_name)


def set_level(level: str) -> None:
    """Change verbosity at runtime (used by the --verbose CLI flag)."""
    logger.setLevel(level.upper())
