"""Session request/response and event schemas."""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from rep_engine.cv.rep_counter import Progress
from rep_engine.schemas.frame import FrameMessage, ReadinessResponse
from rep_engine.session.engine import OperationResult, SessionStatus
from rep_engine.session.events import (
    PoseUpdate,
    ProgressChanged,
    SessionCompleted,
    StateChanged,
)
from rep_engine.session.state_machine import SessionState


class SessionStartRequest(BaseModel):
    """Schema for starting a session."""
    exercise_type: str = Field(..., description="push_ups, squats, plank, jumping_jacks, burpees or glute_bridge")
    target: int = Field(..., description="Reps for cyclic exercises, seconds for holds")
    config: Optional[Dict[str, Any]] = None


class StateModel(BaseModel):
    """Tagged session state: {"state": "counting_down", "remaining": 2}."""
    state: SessionState
    remaining: Optional[int] = None

    @classmethod
    def build(cls, state: SessionState, remaining: Optional[int] = None) -> "StateModel":
        if state != SessionState.COUNTING_DOWN:
            remaining = None
        return cls(state=state, remaining=remaining)


class ProgressModel(BaseModel):
    kind: str
    value: int

    @classmethod
    def from_progress(cls, progress: Optional[Progress]) -> Optional["ProgressModel"]:
        if progress is None:
            return None
        return cls(kind=progress.kind.value, value=progress.value)


class OperationResponse(BaseModel):
    accepted: bool
    state: StateModel
    reason: Optional[str] = None

    @classmethod
    def from_result(cls, result: OperationResult, remaining: Optional[int] = None) -> "OperationResponse":
        return cls(
            accepted=result.accepted,
            state=StateModel.build(result.state, remaining),
            reason=result.reason,
        )


class SessionStatusResponse(BaseModel):
    state: StateModel
    exercise_type: Optional[str] = None
    progress: Optional[ProgressModel] = None
    target: Optional[ProgressModel] = None
    readiness: Optional[ReadinessResponse] = None
    phase: str = "unknown"

    @classmethod
    def from_status(cls, status: SessionStatus) -> "SessionStatusResponse":
        return cls(
            state=StateModel.build(status.state, status.countdown_remaining),
            exercise_type=status.exercise_type.value if status.exercise_type else None,
            progress=ProgressModel.from_progress(status.progress),
            target=ProgressModel.from_progress(status.target),
            readiness=ReadinessResponse.from_readiness(status.readiness),
            phase=status.phase.value,
        )


# =============================================================================
# STREAM MESSAGES
# =============================================================================

class PoseMessage(BaseModel):
    type: Literal["pose"] = "pose"
    timestamp: float
    phase: str
    feedback: Optional[str] = None
    readiness: ReadinessResponse
    frame: FrameMessage


class StateChangedMessage(BaseModel):
    type: Literal["state_changed"] = "state_changed"
    state: StateModel
    previous: SessionState


class ProgressMessage(BaseModel):
    type: Literal["progress"] = "progress"
    progress: ProgressModel
    target: ProgressModel


class CompletedMessage(BaseModel):
    type: Literal["completed"] = "completed"
    progress: ProgressModel
    target: ProgressModel
    skipped: bool = False


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    detail: str


def event_message(event) -> BaseModel:
    """Convert an engine event into its stream message."""
    if isinstance(event, PoseUpdate):
        return PoseMessage(
            timestamp=event.timestamp,
            phase=event.phase.value,
            feedback=event.feedback,
            readiness=ReadinessResponse.from_readiness(event.readiness),
            frame=FrameMessage(
                timestamp=event.timestamp,
                keypoints={
                    joint.value: {"x": kp.x, "y": kp.y, "confidence": kp.confidence}
                    for joint, kp in event.keypoints.items()
                },
            ),
        )
    if isinstance(event, StateChanged):
        return StateChangedMessage(
            state=StateModel.build(event.state, event.countdown_remaining),
            previous=event.previous,
        )
    if isinstance(event, ProgressChanged):
        return ProgressMessage(
            progress=ProgressModel.from_progress(event.progress),
            target=ProgressModel.from_progress(event.target),
        )
    if isinstance(event, SessionCompleted):
        return CompletedMessage(
            progress=ProgressModel.from_progress(event.progress),
            target=ProgressModel.from_progress(event.target),
            skipped=event.skipped,
        )
    raise TypeError(f"Unsupported event: {type(event).__name__}")
