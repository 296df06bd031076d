"""
Pose analysis pipeline for exercise rep detection.

PIPELINE COMPONENTS:
1. KeypointFrame: Immutable per-frame joint positions and confidences
2. ReadinessGate: Required joints visible and confident enough to count
3. FeatureSmoother: Savitzky-Golay + EMA smoothing of joint-angle features
4. PhaseClassifier: One geometric strategy per exercise (up/down/holding/broken)
5. RepCounter / HoldTimer: Dwell-debounced rep counting and hold timing

Usage:
    from rep_engine.cv import get_profile, KeypointFrame

    profile = get_profile("squats")
    classifier = profile.build_classifier(smoothing_window=5)
    phase = classifier.classify(frame)
"""

from rep_engine.cv.keypoints import (
    Joint, Keypoint, KeypointFrame, angle_3pt, joint_angle, mean_bilateral_angle
)
from rep_engine.cv.feature_smoother import FeatureSmoother, SmootherBank
from rep_engine.cv.readiness import Readiness, ReadinessGate
from rep_engine.cv.phase_classifier import (
    Phase,
    PhaseClassifier,
    PushUpClassifier,
    SquatClassifier,
    PlankClassifier,
    JumpingJackClassifier,
    BurpeeClassifier,
    GluteBridgeClassifier,
)
from rep_engine.cv.exercises import (
    ExerciseType, ExerciseKind, ExerciseProfile, EXERCISES, get_profile
)
from rep_engine.cv.rep_counter import (
    Progress, ProgressKind, PhaseDebouncer, RepCounter, HoldTimer
)

__all__ = [
    # Keypoints & geometry
    "Joint",
    "Keypoint",
    "KeypointFrame",
    "angle_3pt",
    "joint_angle",
    "mean_bilateral_angle",

    # Feature smoothing (Savitzky-Golay + EMA)
    "FeatureSmoother",
    "SmootherBank",

    # Readiness
    "Readiness",
    "ReadinessGate",

    # Phase classification
    "Phase",
    "PhaseClassifier",
    "PushUpClassifier",
    "SquatClassifier",
    "PlankClassifier",
    "JumpingJackClassifier",
    "BurpeeClassifier",
    "GluteBridgeClassifier",

    # Exercise registry
    "ExerciseType",
    "ExerciseKind",
    "ExerciseProfile",
    "EXERCISES",
    "get_profile",

    # Accumulators
    "Progress",
    "ProgressKind",
    "PhaseDebouncer",
    "RepCounter",
    "HoldTimer",
]
