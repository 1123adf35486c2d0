import threading

import pytest

from tests.fakes import FakeClock, make_pose
from utils import logger as project_logger


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def propagate_logs(monkeypatch):
    """Let caplog see records from the project logger."""
    monkeypatch.setattr(project_logger.logger, 'propagate', True)


@pytest.fixture
def gate():
    """A pair of events for holding a fake call in flight."""
    return threading.Event(), threading.Event()


@pytest.fixture
def squat_pose():
    # Knee angle 45, hip angle 90 on the left side
    return make_pose(
        left_shoulder=(1, 0),
        left_hip=(0, 0),
        left_knee=(0, -2),
        left_ankle=(1, -1),
    )


@pytest.fixture
def pushup_pose():
    # Shoulder-hip-ankle collinear, elbow fully extended (180)
    return make_pose(
        left_shoulder=(0, 0),
        left_elbow=(1, 0),
        left_wrist=(2, 0),
        left_hip=(0, -1),
        left_knee=(0, -1.5),
        left_ankle=(0, -2),
    )
