"""Keypoint frame wire schemas."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from rep_engine.cv.keypoints import Joint, KeypointFrame
from rep_engine.cv.readiness import Readiness


class KeypointModel(BaseModel):
    """One joint: normalized position and detector confidence."""
    x: float
    y: float
    confidence: float = Field(..., ge=0.0, le=1.0)


class FrameMessage(BaseModel):
    """
    Keypoint frame as sent by pose estimator clients.

    {"timestamp": 12.5, "keypoints": {"left_wrist": {"x": 0.4, "y": 0.6, "confidence": 0.9}}}
    """
    timestamp: float
    keypoints: Dict[str, KeypointModel] = Field(default_factory=dict)

    @field_validator("keypoints")
    @classmethod
    def validate_joint_names(cls, v: Dict[str, KeypointModel]) -> Dict[str, KeypointModel]:
        valid = {joint.value for joint in Joint}
        unknown = sorted(set(v) - valid)
        if unknown:
            raise ValueError(f"Unknown joints: {unknown}")
        return v

    def to_frame(self) -> KeypointFrame:
        return KeypointFrame.from_mapping(
            self.timestamp,
            {name: (kp.x, kp.y, kp.confidence) for name, kp in self.keypoints.items()},
        )

    @classmethod
    def from_frame(cls, frame: KeypointFrame) -> "FrameMessage":
        return cls(
            timestamp=frame.timestamp,
            keypoints={
                joint.value: KeypointModel(x=kp.x, y=kp.y, confidence=kp.confidence)
                for joint, kp in frame.keypoints.items()
            },
        )


class ReadinessResponse(BaseModel):
    ready: bool
    hint: str
    missing_joints: List[str] = []
    mean_confidence: float = 0.0

    @classmethod
    def from_readiness(cls, readiness: Optional[Readiness]) -> Optional["ReadinessResponse"]:
        if readiness is None:
            return None
        return cls(
            ready=readiness.ready,
            hint=readiness.hint,
            missing_joints=[joint.value for joint in readiness.missing_joints],
            mean_confidence=round(readiness.mean_confidence, 4),
        )


class PreviewRequest(BaseModel):
    exercise_type: str
    frame: FrameMessage
