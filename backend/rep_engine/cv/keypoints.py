"""
Keypoint data model and body geometry helpers.

A KeypointFrame is the engine's only view of the body: one immutable
snapshot per camera frame, produced by an external pose estimator.

COORDINATES:
- Normalized camera space, x and y in [0, 1]
- y grows downward (0 = top of frame)
- Missing joints are ABSENT from the mapping, never zero-filled

Joint names follow the 17-point body model shared by ML Kit, MediaPipe
and MoveNet, in snake_case.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np


class Joint(str, Enum):
    """Named body joints."""
    NOSE = "nose"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


@dataclass(frozen=True)
class Keypoint:
    """A single joint estimate."""
    x: float
    y: float
    confidence: float

    @property
    def point(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class KeypointFrame:
    """All keypoints for a single camera frame."""
    timestamp: float
    keypoints: Mapping[Joint, Keypoint] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze the mapping so a frame cannot change after it is produced
        object.__setattr__(self, "keypoints", MappingProxyType(dict(self.keypoints)))

    def get(self, joint: Joint) -> Optional[Keypoint]:
        return self.keypoints.get(joint)

    def has(self, *joints: Joint) -> bool:
        return all(j in self.keypoints for j in joints)

    @property
    def is_empty(self) -> bool:
        return len(self.keypoints) == 0

    def mean_confidence(self, joints: Optional[Iterable[Joint]] = None) -> float:
        """Average confidence over the given joints (absent joints count as 0)."""
        if joints is None:
            values = [kp.confidence for kp in self.keypoints.values()]
        else:
            values = [
                self.keypoints[j].confidence if j in self.keypoints else 0.0
                for j in joints
            ]
        if not values:
            return 0.0
        return float(np.mean(values))

    def midpoint(self, left: Joint, right: Joint) -> Optional[Tuple[float, float]]:
        """Midpoint of a left/right joint pair, or None if either is absent."""
        a = self.keypoints.get(left)
        b = self.keypoints.get(right)
        if a is None or b is None:
            return None
        return ((a.x + b.x) / 2, (a.y + b.y) / 2)

    @classmethod
    def from_mapping(
        cls,
        timestamp: float,
        keypoints: Mapping[str, Tuple[float, float, float]],
    ) -> "KeypointFrame":
        """
        Build a frame from a plain joint-name -> (x, y, confidence) mapping.

        Unknown joint names are ignored.
        """
        parsed: Dict[Joint, Keypoint] = {}
        for name, (x, y, conf) in keypoints.items():
            try:
                joint = Joint(name)
            except ValueError:
                continue
            parsed[joint] = Keypoint(x=float(x), y=float(y), confidence=float(conf))
        return cls(timestamp=float(timestamp), keypoints=parsed)


# =============================================================================
# Geometry
# =============================================================================

def angle_3pt(
    a: Tuple[float, float],
    b: Tuple[float, float],
    c: Tuple[float, float],
) -> float:
    """
    Return angle ABC in degrees with B as vertex, in [0, 180].

    Uses atan2(|cross|, dot) so collinear points give exactly 180.
    Degenerate input (zero-length segment) returns 0.0.
    """
    v1 = np.array([a[0] - b[0], a[1] - b[1]], dtype=float)
    v2 = np.array([c[0] - b[0], c[1] - b[1]], dtype=float)
    if not np.any(v1) or not np.any(v2):
        return 0.0
    dot = float(np.dot(v1, v2))
    cross = float(v1[0] * v2[1] - v1[1] * v2[0])
    return math.degrees(math.atan2(abs(cross), dot))


def joint_angle(frame: KeypointFrame, a: Joint, b: Joint, c: Joint) -> Optional[float]:
    """Angle at joint b, or None if any joint is absent."""
    pa, pb, pc = frame.get(a), frame.get(b), frame.get(c)
    if pa is None or pb is None or pc is None:
        return None
    return angle_3pt(pa.point, pb.point, pc.point)


def mean_bilateral_angle(
    frame: KeypointFrame,
    left: Tuple[Joint, Joint, Joint],
    right: Tuple[Joint, Joint, Joint],
) -> Optional[float]:
    """
    Average of the left and right versions of an angle.

    Falls back to whichever side is visible; None if neither is.
    """
    angles: List[float] = []
    for triple in (left, right):
        value = joint_angle(frame, *triple)
        if value is not None:
            angles.append(value)
    if not angles:
        return None
    return float(np.mean(angles))
