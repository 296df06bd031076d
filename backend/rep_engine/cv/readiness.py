"""
Readiness gate: is enough of the body visible to start or keep counting?

The gate is a pure function of one frame. It never raises; malformed or
empty frames simply come back as not ready with a hint for the user.
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence, Tuple

from rep_engine.cv.keypoints import Joint, KeypointFrame

logger = logging.getLogger(__name__)


HINT_NO_POSE = "Position yourself in frame"
HINT_MISSING_JOINTS = "Show your whole body in frame"
HINT_LOW_CONFIDENCE = "Move closer or improve lighting"
HINT_READY = "Ready to start!"


@dataclass(frozen=True)
class Readiness:
    """Result of a readiness evaluation."""
    ready: bool
    hint: str
    missing_joints: Tuple[Joint, ...] = field(default_factory=tuple)
    mean_confidence: float = 0.0

    @classmethod
    def not_ready(cls, hint: str = HINT_NO_POSE) -> "Readiness":
        return cls(ready=False, hint=hint)


class ReadinessGate:
    """
    Checks a frame against a required joint set and confidence thresholds.

    A frame is ready when:
    1. Every required joint is present with confidence >= min_joint_confidence
    2. Mean confidence over the required joints >= min_mean_confidence
    """

    def __init__(
        self,
        required_joints: Sequence[Joint],
        positioning_hint: str = HINT_MISSING_JOINTS,
        min_joint_confidence: float = 0.5,
        min_mean_confidence: float = 0.7,
    ):
        self.required_joints = tuple(required_joints)
        self.positioning_hint = positioning_hint
        self.min_joint_confidence = min_joint_confidence
        self.min_mean_confidence = min_mean_confidence

    def evaluate(self, frame: KeypointFrame) -> Readiness:
        if frame is None or frame.is_empty:
            return Readiness.not_ready(HINT_NO_POSE)

        missing = tuple(
            joint for joint in self.required_joints
            if joint not in frame.keypoints
            or frame.keypoints[joint].confidence < self.min_joint_confidence
        )
        mean_conf = frame.mean_confidence(self.required_joints)

        if missing:
            # Nothing usable at all: generic hint, otherwise exercise-specific
            hint = HINT_MISSING_JOINTS if len(missing) == len(self.required_joints) else self.positioning_hint
            return Readiness(ready=False, hint=hint, missing_joints=missing, mean_confidence=mean_conf)

        if mean_conf < self.min_mean_confidence:
            return Readiness(ready=False, hint=HINT_LOW_CONFIDENCE, mean_confidence=mean_conf)

        return Readiness(ready=True, hint=HINT_READY, mean_confidence=mean_conf)
