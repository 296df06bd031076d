"""Shared fixtures: synthetic keypoint frames and a manually advanced engine."""

from typing import Callable, Dict, Tuple

import pytest

from rep_engine.config import EngineSettings
from rep_engine.cv.keypoints import Joint, KeypointFrame
from rep_engine.session.engine import RepEngine
from rep_engine.session.timers import ManualScheduler

FRAME_STEP = 0.02  # 50 fps

Pose = Callable[[float], KeypointFrame]


def make_frame(t: float, points: Dict[str, Tuple[float, float]], confidence: float = 0.9) -> KeypointFrame:
    """
    Build a frame from joint coordinates.

    Names without a side ("shoulder") are applied to both left and right,
    which is what a side-on camera sees.
    """
    joint_names = {joint.value for joint in Joint}
    raw = {}
    for name, (x, y) in points.items():
        if name in joint_names:
            raw[name] = (x, y, confidence)
        else:
            raw[f"left_{name}"] = (x, y, confidence)
            raw[f"right_{name}"] = (x, y, confidence)
    return KeypointFrame.from_mapping(t, raw)


# =============================================================================
# Poses (side view unless noted)
# =============================================================================

PUSH_UP_UP = {
    "nose": (0.2, 0.5),
    "shoulder": (0.3, 0.5),
    "elbow": (0.3, 0.6),
    "wrist": (0.3, 0.7),
    "hip": (0.5, 0.5),
    "knee": (0.6, 0.5),
    "ankle": (0.7, 0.5),
}

PUSH_UP_DOWN = {
    **PUSH_UP_UP,
    "elbow": (0.22, 0.56),
    "wrist": (0.3, 0.62),
}

SQUAT_UP = {
    "shoulder": (0.5, 0.3),
    "hip": (0.5, 0.5),
    "knee": (0.5, 0.7),
    "ankle": (0.5, 0.9),
}

SQUAT_DOWN = {
    "shoulder": (0.4, 0.45),
    "hip": (0.35, 0.72),
    "knee": (0.5, 0.7),
    "ankle": (0.5, 0.9),
}

PLANK_HOLDING = {
    "shoulder": (0.3, 0.5),
    "elbow": (0.3, 0.6),
    "wrist": (0.32, 0.6),
    "hip": (0.5, 0.5),
    "knee": (0.6, 0.5),
    "ankle": (0.7, 0.5),
}

PLANK_SAGGING = {
    **PLANK_HOLDING,
    "hip": (0.5, 0.6),
    "knee": (0.6, 0.58),
}

# Front view
JUMPING_JACK_DOWN = {
    "nose": (0.5, 0.2),
    "left_shoulder": (0.45, 0.3), "right_shoulder": (0.55, 0.3),
    "left_elbow": (0.43, 0.4), "right_elbow": (0.57, 0.4),
    "left_wrist": (0.42, 0.5), "right_wrist": (0.58, 0.5),
    "left_hip": (0.46, 0.55), "right_hip": (0.54, 0.55),
    "left_ankle": (0.47, 0.9), "right_ankle": (0.53, 0.9),
}

JUMPING_JACK_UP = {
    **JUMPING_JACK_DOWN,
    "left_elbow": (0.38, 0.2), "right_elbow": (0.62, 0.2),
    "left_wrist": (0.35, 0.1), "right_wrist": (0.65, 0.1),
    "left_ankle": (0.4, 0.9), "right_ankle": (0.6, 0.9),
}

BURPEE_STANDING = {
    "nose": (0.5, 0.2),
    "shoulder": (0.5, 0.3),
    "elbow": (0.5, 0.42),
    "wrist": (0.5, 0.52),
    "hip": (0.5, 0.55),
    "knee": (0.5, 0.72),
    "ankle": (0.5, 0.9),
}

BURPEE_PLANK = PUSH_UP_UP

GLUTE_BRIDGE_DOWN = {
    "shoulder": (0.2, 0.8),
    "hip": (0.4, 0.8),
    "knee": (0.55, 0.55),
    "ankle": (0.85, 0.8),
}

GLUTE_BRIDGE_UP = {
    **GLUTE_BRIDGE_DOWN,
    "hip": (0.4, 0.66),
}


def pose(points: Dict[str, Tuple[float, float]], confidence: float = 0.9) -> Pose:
    """Frame factory for a fixed pose at any timestamp."""
    return lambda t: make_frame(t, points, confidence)


def empty_pose(t: float) -> KeypointFrame:
    return KeypointFrame.from_mapping(t, {})


# =============================================================================
# Engine fixtures
# =============================================================================

@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def settings() -> EngineSettings:
    # Smoothing off so phase timing in scenarios is exact
    return EngineSettings(smoothing_window=1)


@pytest.fixture
def engine(scheduler, settings):
    engine = RepEngine(scheduler=scheduler, settings=settings)
    yield engine
    engine.dispose()


@pytest.fixture
def recorder(engine):
    """Collects session events and pose updates in publish order."""
    events = []
    poses = []
    engine.session_events.subscribe(events.append)
    engine.pose_updates.subscribe(poses.append)
    return events, poses


def feed(engine: RepEngine, scheduler: ManualScheduler, frame_pose: Pose, seconds: float, step: float = FRAME_STEP):
    """Feed one pose for `seconds`, advancing the clock with each frame."""
    for _ in range(int(round(seconds / step))):
        scheduler.advance(step)
        engine.feed_frame(frame_pose(scheduler.now()))


def reach_active(engine: RepEngine, scheduler: ManualScheduler, ready_pose: Pose):
    """Hold a ready pose through the stability window, then run out the countdown."""
    feed(engine, scheduler, ready_pose, 1.6)
    scheduler.advance(3.0)
