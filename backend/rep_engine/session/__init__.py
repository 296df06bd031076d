"""Session lifecycle: state machine, timers, events and the engine facade."""

from rep_engine.session.state_machine import SessionState, SessionStateMachine
from rep_engine.session.timers import Scheduler, ThreadingScheduler, ManualScheduler
from rep_engine.session.events import (
    EventChannel,
    PoseUpdate,
    StateChanged,
    ProgressChanged,
    SessionCompleted,
)
from rep_engine.session.engine import RepEngine, OperationResult, SessionStatus

__all__ = [
    "SessionState",
    "SessionStateMachine",
    "Scheduler",
    "ThreadingScheduler",
    "ManualScheduler",
    "EventChannel",
    "PoseUpdate",
    "StateChanged",
    "ProgressChanged",
    "SessionCompleted",
    "RepEngine",
    "OperationResult",
    "SessionStatus",
]
