"""
Rep engine facade.

The engine is the only entry point into the counting pipeline:

    KeypointFrame -> ReadinessGate -> PhaseClassifier -> RepCounter/HoldTimer
                  -> SessionStateMachine -> event channels

USAGE:
    engine = RepEngine()
    engine.session_events.subscribe(print)
    engine.start("push_ups", target=10)
    for frame in frames:
        engine.feed_frame(frame)

CONCURRENCY:
Frames and timer callbacks may arrive on different threads. One re-entrant
lock guards all session state. Events produced while the lock is held are
buffered and published, in order, once it is released.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from rep_engine.config import EngineSettings, SessionConfig, get_settings
from rep_engine.cv.exercises import ExerciseProfile, ExerciseType, get_profile
from rep_engine.cv.keypoints import KeypointFrame
from rep_engine.cv.phase_classifier import Phase, PhaseClassifier
from rep_engine.cv.readiness import Readiness, ReadinessGate
from rep_engine.cv.rep_counter import HoldTimer, Progress, ProgressKind, RepCounter
from rep_engine.errors import ConfigurationError, InvalidTransitionError
from rep_engine.session.events import (
    EventChannel,
    PoseUpdate,
    ProgressChanged,
    SessionCompleted,
    SessionEvent,
    StateChanged,
)
from rep_engine.session.state_machine import SessionState, SessionStateMachine
from rep_engine.session.timers import Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)

HINT_STALE_FRAME = "Waiting for camera"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a control operation."""
    accepted: bool
    state: SessionState
    reason: Optional[str] = None


@dataclass(frozen=True)
class SessionStatus:
    """Snapshot of the engine for polling callers."""
    state: SessionState
    countdown_remaining: Optional[int] = None
    exercise_type: Optional[ExerciseType] = None
    progress: Optional[Progress] = None
    target: Optional[Progress] = None
    readiness: Optional[Readiness] = None
    phase: Phase = Phase.UNKNOWN


class _Session:
    """Per-session components, created at start() and dropped at reset()."""

    def __init__(
        self,
        profile: ExerciseProfile,
        target: Progress,
        config: SessionConfig,
        clock,
    ):
        self.profile = profile
        self.target = target
        self.config = config
        self.gate = ReadinessGate(
            profile.required_joints,
            positioning_hint=profile.positioning_hint,
            min_joint_confidence=config.min_joint_confidence,
            min_mean_confidence=config.min_mean_confidence,
        )
        self.classifier: PhaseClassifier = profile.build_classifier(config.smoothing_window)

        if profile.is_cyclic:
            self.accumulator: Union[RepCounter, HoldTimer] = RepCounter(
                profile.rep_transition,
                min_dwell=config.min_dwell_seconds,
                min_rep_interval=profile.min_rep_interval,
            )
        else:
            reset_on_break = profile.reset_on_break if config.reset_on_break is None else config.reset_on_break
            self.accumulator = HoldTimer(clock, min_dwell=config.min_dwell_seconds, reset_on_break=reset_on_break)

        self.progress = self.accumulator.current_progress()
        self.last_timestamp: Optional[float] = None
        self.last_frame_at: Optional[float] = None
        self.frames_timed_out = False
        self.readiness: Optional[Readiness] = None
        self.phase = Phase.UNKNOWN


class RepEngine:
    """
    Exercise repetition / hold-time engine.

    Control operations (start, skip, reset, dispose, add_manual_tick) return
    an OperationResult. start() raises ConfigurationError for an invalid
    exercise, target or config before any session is created.
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.settings = settings or get_settings()
        self.scheduler = scheduler or ThreadingScheduler()

        self.pose_updates: EventChannel[PoseUpdate] = EventChannel("pose_updates")
        self.session_events: EventChannel[SessionEvent] = EventChannel("session_events")

        self._lock = threading.RLock()
        self._dispatch_lock = threading.RLock()
        self._pending: List[Tuple[EventChannel, Any]] = []
        self._session: Optional[_Session] = None
        self._machine = SessionStateMachine(
            self.scheduler,
            self._lock,
            on_transition=self._on_transition,
            on_tick=self._on_hold_tick,
            flush=self._flush,
        )

    @property
    def state(self) -> SessionState:
        return self._machine.state

    # =========================================================================
    # CONTROL OPERATIONS
    # =========================================================================

    def start(
        self,
        exercise_type: Union[ExerciseType, str],
        target: Union[int, Progress],
        config: Optional[Union[SessionConfig, Mapping[str, Any]]] = None,
    ) -> OperationResult:
        profile = get_profile(exercise_type)
        session_target = self._resolve_target(profile, target)
        session_config = self._resolve_config(config)

        with self._lock:
            try:
                self._machine.require("start", SessionState.IDLE)
            except InvalidTransitionError as e:
                return self._reject(e)

            self._session = _Session(profile, session_target, session_config, self.scheduler.now)
            logger.info(
                f"Starting {profile.exercise_type.value} session, "
                f"target {session_target.value} {session_target.kind.value}"
            )
            self._machine.start(
                session_config.stability_window_seconds,
                session_config.countdown_seconds,
                hold_ticks=not profile.is_cyclic,
            )
            result = OperationResult(True, self._machine.state)
        self._flush()
        return result

    def skip(self) -> OperationResult:
        with self._lock:
            try:
                self._machine.require("skip", *SessionStateMachine.SKIPPABLE)
            except InvalidTransitionError as e:
                return self._reject(e)
            session = self._session
            self._freeze(session)
            self._machine.skip()
            self._emit(self.session_events, SessionCompleted(session.progress, session.target, skipped=True))
            result = OperationResult(True, self._machine.state)
        self._flush()
        return result

    def add_manual_tick(self) -> OperationResult:
        with self._lock:
            try:
                self._machine.require("add_manual_tick", SessionState.ACTIVE)
            except InvalidTransitionError as e:
                return self._reject(e)
            session = self._session
            if isinstance(session.accumulator, RepCounter):
                session.accumulator.add_manual()
            else:
                session.accumulator.add_seconds(1)
            logger.info("Manual tick")
            self._update_progress(session)
            result = OperationResult(True, self._machine.state)
        self._flush()
        return result

    def reset(self) -> OperationResult:
        with self._lock:
            self._machine.reset()
            self._session = None
            result = OperationResult(True, self._machine.state)
        self._flush()
        return result

    def dispose(self) -> OperationResult:
        """Reset and drop all subscribers."""
        result = self.reset()
        self.pose_updates.clear()
        self.session_events.clear()
        return result

    # =========================================================================
    # FRAME FEED
    # =========================================================================

    def feed_frame(self, frame: KeypointFrame) -> Optional[PoseUpdate]:
        """
        Process one keypoint frame.

        Returns the PoseUpdate published for the frame, or None when no
        session is accepting frames (idle or complete).
        """
        with self._lock:
            session = self._session
            state = self._machine.state
            if session is None or state in (SessionState.IDLE, SessionState.COMPLETE):
                logger.debug(f"Frame ignored while {state.value}")
                return None

            if session.last_timestamp is not None and frame.timestamp <= session.last_timestamp:
                logger.debug(f"Stale frame at {frame.timestamp} (last {session.last_timestamp})")
                update = PoseUpdate(Readiness.not_ready(HINT_STALE_FRAME), Phase.UNKNOWN, frame.keypoints, frame.timestamp)
                self._emit(self.pose_updates, update)
            else:
                update = self._process(session, frame)

        self._flush()
        return update

    def _process(self, session: _Session, frame: KeypointFrame) -> PoseUpdate:
        session.last_timestamp = frame.timestamp
        session.last_frame_at = self.scheduler.now()
        session.frames_timed_out = False

        readiness = session.gate.evaluate(frame)
        if readiness.ready:
            phase = session.classifier.classify(frame)
            feedback = session.classifier.last_feedback
        else:
            phase, feedback = Phase.UNKNOWN, None
        session.readiness = readiness
        session.phase = phase

        update = PoseUpdate(readiness, phase, frame.keypoints, frame.timestamp, feedback)
        self._emit(self.pose_updates, update)

        state = self._machine.state
        if state == SessionState.POSITIONING:
            self._machine.observe_readiness(readiness.ready)
        elif state == SessionState.ACTIVE:
            session.accumulator.observe(phase, frame.timestamp)
            self._update_progress(session)

        return update

    # =========================================================================
    # QUERIES
    # =========================================================================

    def preview(self, exercise_type: Union[ExerciseType, str], frame: KeypointFrame) -> Readiness:
        """Evaluate readiness for an exercise without starting a session."""
        profile = get_profile(exercise_type)
        gate = ReadinessGate(
            profile.required_joints,
            positioning_hint=profile.positioning_hint,
            min_joint_confidence=self.settings.min_joint_confidence,
            min_mean_confidence=self.settings.min_mean_confidence,
        )
        return gate.evaluate(frame)

    def status(self) -> SessionStatus:
        with self._lock:
            session = self._session
            if session is None:
                return SessionStatus(state=self._machine.state)
            if self._machine.state == SessionState.ACTIVE:
                progress = session.accumulator.current_progress()
            else:
                progress = session.progress
            return SessionStatus(
                state=self._machine.state,
                countdown_remaining=self._machine.countdown_remaining,
                exercise_type=session.profile.exercise_type,
                progress=progress,
                target=session.target,
                readiness=session.readiness,
                phase=session.phase,
            )

    # =========================================================================
    # INTERNALS (lock held)
    # =========================================================================

    def _update_progress(self, session: _Session):
        progress = session.accumulator.current_progress()
        if progress == session.progress:
            return

        session.progress = progress
        self._emit(self.session_events, ProgressChanged(progress, session.target))

        if progress.reached(session.target):
            logger.info(f"Target reached: {progress.value} {progress.kind.value}")
            self._freeze(session)
            self._machine.complete()
            self._emit(self.session_events, SessionCompleted(progress, session.target))

    def _freeze(self, session: _Session):
        if isinstance(session.accumulator, HoldTimer):
            session.accumulator.suspend()
        session.progress = session.accumulator.current_progress()

    def _on_transition(self, previous: SessionState, state: SessionState, countdown_remaining: Optional[int]):
        self._emit(self.session_events, StateChanged(state, previous, countdown_remaining))

    def _on_hold_tick(self):
        session = self._session
        if session is None or self._machine.state != SessionState.ACTIVE:
            return

        timeout = session.config.frame_timeout_seconds
        if (
            not session.frames_timed_out
            and (session.last_frame_at is None or self.scheduler.now() - session.last_frame_at >= timeout)
        ):
            logger.info(f"No frames for {timeout}s, pausing hold")
            session.frames_timed_out = True
            session.accumulator.suspend(at=session.last_frame_at)

        self._update_progress(session)

    def _emit(self, channel: EventChannel, event):
        self._pending.append((channel, event))

    def _reject(self, error: InvalidTransitionError) -> OperationResult:
        logger.warning(f"Rejected: {error.reason}")
        return OperationResult(False, self._machine.state, error.reason)

    def _flush(self):
        with self._dispatch_lock:
            with self._lock:
                pending, self._pending = self._pending, []
            for channel, event in pending:
                channel.publish(event)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def _resolve_target(profile: ExerciseProfile, target: Union[int, Progress]) -> Progress:
        kind = ProgressKind.REPS if profile.is_cyclic else ProgressKind.SECONDS
        if isinstance(target, Progress):
            if target.kind != kind:
                raise ConfigurationError(
                    f"{profile.exercise_type.value} is counted in {kind.value}, not {target.kind.value}"
                )
            value = target.value
        else:
            value = target

        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigurationError(f"Target must be a positive integer, got {value!r}")
        return Progress(kind, value)

    def _resolve_config(self, config: Optional[Union[SessionConfig, Mapping[str, Any]]]) -> SessionConfig:
        base = SessionConfig.from_settings(self.settings)
        if config is None:
            return base
        if isinstance(config, SessionConfig):
            overrides: Dict[str, Any] = config.model_dump(exclude_unset=True)
        elif isinstance(config, Mapping):
            overrides = dict(config)
        else:
            raise ConfigurationError(f"Unsupported config type: {type(config).__name__}")
        return SessionConfig.validated(**{**base.model_dump(), **overrides})
