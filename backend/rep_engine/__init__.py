"""Exercise repetition and hold-time engine driven by body keypoints."""

from rep_engine.errors import EngineError, ConfigurationError, InvalidTransitionError
from rep_engine.session.engine import RepEngine, OperationResult, SessionStatus

__all__ = [
    "EngineError",
    "ConfigurationError",
    "InvalidTransitionError",
    "RepEngine",
    "OperationResult",
    "SessionStatus",
]
