"""Pydantic schemas for API request/response and stream messages."""

from rep_engine.schemas.frame import (
    KeypointModel,
    FrameMessage,
    ReadinessResponse,
    PreviewRequest,
)
from rep_engine.schemas.session import (
    SessionStartRequest,
    StateModel,
    ProgressModel,
    OperationResponse,
    SessionStatusResponse,
    event_message,
)

__all__ = [
    "KeypointModel",
    "FrameMessage",
    "ReadinessResponse",
    "PreviewRequest",
    "SessionStartRequest",
    "StateModel",
    "ProgressModel",
    "OperationResponse",
    "SessionStatusResponse",
    "event_message",
]
