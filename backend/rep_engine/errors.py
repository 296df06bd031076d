"""Engine error types."""

from typing import Optional


class EngineError(Exception):
    """Base class for rep engine errors."""


class ConfigurationError(EngineError, ValueError):
    """Invalid target, unknown exercise type or invalid session config."""


class InvalidTransitionError(EngineError):
    """An operation was requested that is not valid in the current state."""

    def __init__(self, operation: str, state: str, reason: Optional[str] = None):
        self.operation = operation
        self.state = state
        self.reason = reason or f"'{operation}' is not allowed while {state}"
        super().__init__(self.reason)
