"""
Session events and observer channels.

Two typed channels are exposed by the engine:
- pose updates: PoseUpdate on every processed frame while a session exists,
  carrying the classifier's form feedback for ready frames
- session events: StateChanged, ProgressChanged, SessionCompleted

Subscribers are plain callables. A failing subscriber is logged and never
affects the engine or the other subscribers.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Mapping, Optional, TypeVar, Union

from rep_engine.cv.keypoints import Joint, Keypoint
from rep_engine.cv.phase_classifier import Phase
from rep_engine.cv.readiness import Readiness
from rep_engine.cv.rep_counter import Progress
from rep_engine.session.state_machine import SessionState

logger = logging.getLogger(__name__)

E = TypeVar("E")


@dataclass(frozen=True)
class PoseUpdate:
    readiness: Readiness
    phase: Phase
    keypoints: Mapping[Joint, Keypoint]
    timestamp: float = 0.0
    feedback: Optional[str] = None


@dataclass(frozen=True)
class StateChanged:
    state: SessionState
    previous: SessionState
    countdown_remaining: Optional[int] = None


@dataclass(frozen=True)
class ProgressChanged:
    progress: Progress
    target: Progress


@dataclass(frozen=True)
class SessionCompleted:
    progress: Progress
    target: Progress
    skipped: bool = False


SessionEvent = Union[StateChanged, ProgressChanged, SessionCompleted]


class EventChannel(Generic[E]):
    """List of subscribers for one event type family."""

    def __init__(self, name: str):
        self.name = name
        self._subscribers: List[Callable[[E], None]] = []

    def subscribe(self, callback: Callable[[E], None]) -> Callable[[], None]:
        """Register a subscriber. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: E):
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Subscriber on '{self.name}' failed handling {type(event).__name__}")

    def clear(self):
        self._subscribers.clear()
