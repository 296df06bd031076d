"""
Session state machine.

STATES:
    idle -> positioning -> counting_down(n) -> ... -> active -> complete

TRANSITIONS:
1. idle -> positioning on start()
2. positioning -> counting_down(n) once readiness has been continuously
   true for the stability window; any not-ready frame cancels the timer
3. counting_down(n) -> counting_down(n-1) once per second, then active
   (pose loss does not cancel the countdown)
4. active -> complete when progress reaches the target
5. positioning / counting_down / active -> complete on skip()
6. any state -> idle on reset()

TIMERS:
Every timer captures the generation current when it was scheduled. reset()
bumps the generation, so callbacks from a previous session are ignored even
if they were already queued on another thread.

The machine does not own the lock; it is handed the engine's re-entrant
lock and expects every public method to be called with it held. Timer
callbacks take the lock themselves and call flush() after releasing it.
"""

import logging
from enum import Enum
from typing import Callable, Dict, Optional

from rep_engine.errors import InvalidTransitionError
from rep_engine.session.timers import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    POSITIONING = "positioning"
    COUNTING_DOWN = "counting_down"
    ACTIVE = "active"
    COMPLETE = "complete"


# Timer names
STABILITY_TIMER = "stability"
COUNTDOWN_TIMER = "countdown"
HOLD_TICK_TIMER = "hold_tick"

TICK_SECONDS = 1.0


class SessionStateMachine:
    """Owns session state, countdown and the stability/countdown/hold timers."""

    SKIPPABLE = (SessionState.POSITIONING, SessionState.COUNTING_DOWN, SessionState.ACTIVE)

    def __init__(
        self,
        scheduler: Scheduler,
        lock,
        on_transition: Callable[[SessionState, SessionState, Optional[int]], None],
        on_tick: Callable[[], None],
        flush: Callable[[], None],
    ):
        self.scheduler = scheduler
        self._lock = lock
        self._on_transition = on_transition
        self._on_tick = on_tick
        self._flush = flush

        self.state = SessionState.IDLE
        self.countdown_remaining: Optional[int] = None
        self.generation = 0

        self._timers: Dict[str, TimerHandle] = {}
        self._stability_window = 1.5
        self._countdown_seconds = 3
        self._hold_ticks = False

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def require(self, operation: str, *states: SessionState):
        if self.state not in states:
            raise InvalidTransitionError(operation, self.state.value)

    def start(self, stability_window: float, countdown_seconds: int, hold_ticks: bool = False):
        self.require("start", SessionState.IDLE)
        self._stability_window = stability_window
        self._countdown_seconds = countdown_seconds
        self._hold_ticks = hold_ticks
        self.generation += 1
        self._transition(SessionState.POSITIONING)

    def observe_readiness(self, ready: bool):
        """Drive the stability window from per-frame readiness while positioning."""
        if self.state != SessionState.POSITIONING:
            return

        if not ready:
            if self._cancel(STABILITY_TIMER):
                logger.debug("Readiness lost, stability window cancelled")
            return

        if STABILITY_TIMER in self._timers:
            return

        if self._stability_window <= 0:
            self._begin_countdown()
        else:
            self._schedule(STABILITY_TIMER, self._stability_window, self._begin_countdown)

    def complete(self):
        """active -> complete when the target is reached."""
        self.require("complete", SessionState.ACTIVE)
        self._finish()

    def skip(self):
        self.require("skip", *self.SKIPPABLE)
        self._finish()

    def reset(self):
        """Any state -> idle. Always succeeds."""
        self._cancel_all()
        self.generation += 1
        if self.state != SessionState.IDLE:
            self._transition(SessionState.IDLE)

    # =========================================================================
    # TIMER-DRIVEN TRANSITIONS
    # =========================================================================

    def _begin_countdown(self):
        if self._countdown_seconds <= 0:
            self._activate()
            return
        self._transition(SessionState.COUNTING_DOWN, self._countdown_seconds)
        self._schedule(COUNTDOWN_TIMER, TICK_SECONDS, self._countdown_tick)

    def _countdown_tick(self):
        remaining = (self.countdown_remaining or 1) - 1
        if remaining <= 0:
            self._activate()
            return
        self._transition(SessionState.COUNTING_DOWN, remaining)
        self._schedule(COUNTDOWN_TIMER, TICK_SECONDS, self._countdown_tick)

    def _activate(self):
        self._transition(SessionState.ACTIVE)
        if self._hold_ticks:
            self._schedule(HOLD_TICK_TIMER, TICK_SECONDS, self._hold_tick)

    def _hold_tick(self):
        self._on_tick()
        if self.state == SessionState.ACTIVE:
            self._schedule(HOLD_TICK_TIMER, TICK_SECONDS, self._hold_tick)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _finish(self):
        self._cancel_all()
        self._transition(SessionState.COMPLETE)

    def _transition(self, state: SessionState, countdown_remaining: Optional[int] = None):
        previous = self.state
        self.state = state
        self.countdown_remaining = countdown_remaining if state == SessionState.COUNTING_DOWN else None
        if state == SessionState.COUNTING_DOWN:
            logger.info(f"Session {previous.value} -> {state.value}({countdown_remaining})")
        else:
            logger.info(f"Session {previous.value} -> {state.value}")
        self._on_transition(previous, state, self.countdown_remaining)

    def _schedule(self, name: str, delay: float, action: Callable[[], None]):
        generation = self.generation

        def fire():
            with self._lock:
                if generation != self.generation:
                    logger.debug(f"Ignoring stale {name} timer (generation {generation})")
                    return
                if self._timers.get(name) is not handle:
                    return
                del self._timers[name]
                action()
            self._flush()

        self._cancel(name)
        # Registered before the timer can fire on another thread
        with self._lock:
            handle = self.scheduler.call_later(delay, fire)
            self._timers[name] = handle

    def _cancel(self, name: str) -> bool:
        handle = self._timers.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def _cancel_all(self):
        for name in list(self._timers):
            self._cancel(name)

    @property
    def pending_timers(self):
        return tuple(self._timers)
