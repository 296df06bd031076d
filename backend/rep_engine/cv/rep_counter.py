"""
Repetition and hold-time accumulation.

Two accumulators consume the per-frame Phase stream while a session is
active:

1. RepCounter (cyclic exercises): counts stable phase transitions that
   complete one rep, e.g. DOWN -> UP for push-ups.
2. HoldTimer (isometric exercises): accumulates wall-clock time while the
   stable phase is HOLDING.

DEBOUNCE (dwell):
A new phase only becomes "stable" after it has been observed continuously
for min_dwell seconds of frame time. One noisy frame can therefore never
complete a phase transition, and an oscillating phase stream faster than
the dwell produces no transitions at all.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Tuple

from rep_engine.cv.phase_classifier import Phase

logger = logging.getLogger(__name__)

# Tolerance for float frame timestamps
_EPS = 1e-9


class ProgressKind(str, Enum):
    REPS = "reps"
    SECONDS = "seconds"


@dataclass(frozen=True)
class Progress:
    """Reps completed or whole seconds held."""
    kind: ProgressKind
    value: int = 0

    def reached(self, target: "Progress") -> bool:
        return self.kind == target.kind and self.value >= target.value


class PhaseDebouncer:
    """
    Tracks the last stable phase with a minimum dwell time.

    Ignored phases (UNKNOWN for cyclic exercises) neither confirm nor
    cancel a pending candidate, unless they run on for longer than
    min_dwell: an isolated frame on either side of such a gap is noise.
    """

    def __init__(self, min_dwell: float, ignore: Iterable[Phase] = ()):
        self.min_dwell = min_dwell
        self.ignore = frozenset(ignore)
        self.stable: Optional[Phase] = None
        self._candidate: Optional[Phase] = None
        self._candidate_since: float = 0.0
        self._candidate_seen: float = 0.0

    def observe(self, phase: Phase, timestamp: float) -> Optional[Tuple[Optional[Phase], Phase]]:
        """
        Feed one classified frame.

        Returns:
            (previous_stable, new_stable) when the stable phase changes, else None
        """
        if phase in self.ignore:
            if self._candidate is not None and timestamp - self._candidate_seen > self.min_dwell + _EPS:
                logger.debug(f"Dropping {self._candidate.value} candidate after {timestamp - self._candidate_seen:.2f}s gap")
                self._candidate = None
            return None

        if phase == self.stable:
            self._candidate = None
            return None

        if phase != self._candidate:
            self._candidate = phase
            self._candidate_since = timestamp
        self._candidate_seen = timestamp

        if timestamp - self._candidate_since + _EPS >= self.min_dwell:
            previous = self.stable
            self.stable = phase
            self._candidate = None
            return previous, phase

        return None

    def reset(self):
        self.stable = None
        self._candidate = None
        self._candidate_since = 0.0
        self._candidate_seen = 0.0


class RepCounter:
    """
    Counts reps for cyclic exercises.

    A rep is counted on each stable transition equal to rep_transition,
    provided at least min_rep_interval seconds have passed since the last
    automatic rep.
    """

    def __init__(
        self,
        rep_transition: Tuple[Phase, Phase],
        min_dwell: float = 0.15,
        min_rep_interval: float = 0.0,
    ):
        self.rep_transition = rep_transition
        self.min_rep_interval = min_rep_interval
        self._debouncer = PhaseDebouncer(min_dwell, ignore=(Phase.UNKNOWN,))
        self._count = 0
        self._last_rep_timestamp: Optional[float] = None

    @property
    def stable_phase(self) -> Optional[Phase]:
        return self._debouncer.stable

    def observe(self, phase: Phase, timestamp: float) -> bool:
        """Feed one classified frame. Returns True if a rep was counted."""
        change = self._debouncer.observe(phase, timestamp)
        if change is None or change != self.rep_transition:
            return False

        if (
            self._last_rep_timestamp is not None
            and timestamp - self._last_rep_timestamp + _EPS < self.min_rep_interval
        ):
            logger.debug(
                f"Rep suppressed: {timestamp - self._last_rep_timestamp:.3f}s "
                f"since last rep < {self.min_rep_interval}s"
            )
            return False

        self._count += 1
        self._last_rep_timestamp = timestamp
        return True

    def add_manual(self):
        """Manual tick: counts exactly like an automatic rep."""
        self._count += 1

    def current_progress(self) -> Progress:
        return Progress(ProgressKind.REPS, self._count)

    def reset(self):
        self._debouncer.reset()
        self._count = 0
        self._last_rep_timestamp = None


class HoldTimer:
    """
    Accumulates hold time for isometric exercises.

    - Stable HOLDING: time accumulates (engine clock, not frame time)
    - Stable BROKEN / UNKNOWN: accumulation pauses
    - Stable BROKEN with reset_on_break: accumulated time is discarded

    Progress is reported in whole seconds.
    """

    def __init__(
        self,
        clock: Callable[[], float],
        min_dwell: float = 0.15,
        reset_on_break: bool = False,
    ):
        self._clock = clock
        self.reset_on_break = reset_on_break
        self._debouncer = PhaseDebouncer(min_dwell)
        self._accumulated = 0.0
        self._holding_since: Optional[float] = None

    @property
    def stable_phase(self) -> Optional[Phase]:
        return self._debouncer.stable

    @property
    def is_holding(self) -> bool:
        return self._holding_since is not None

    def observe(self, phase: Phase, timestamp: float) -> bool:
        """Feed one classified frame. Returns True if the stable phase changed."""
        change = self._debouncer.observe(phase, timestamp)
        if change is None:
            return False

        _, new_phase = change
        now = self._clock()
        if new_phase == Phase.HOLDING:
            if self._holding_since is None:
                self._holding_since = now
        else:
            self._pause(now)
            if new_phase == Phase.BROKEN and self.reset_on_break:
                logger.info(f"Hold broken, discarding {self._accumulated:.1f}s")
                self._accumulated = 0.0
        return True

    def suspend(self, at: Optional[float] = None):
        """
        Pause accumulation and forget the stable phase.

        Used when frames stop arriving (at = time of the last frame) and
        when the session ends. Holding must be re-confirmed through the
        dwell before time accumulates again.
        """
        now = self._clock()
        self._pause(now if at is None else min(at, now))
        self._debouncer.reset()

    def add_seconds(self, seconds: float = 1.0):
        """Manual tick: force-advance the hold."""
        self._accumulated += seconds

    def elapsed(self) -> float:
        running = 0.0
        if self._holding_since is not None:
            running = self._clock() - self._holding_since
        return self._accumulated + running

    def current_progress(self) -> Progress:
        return Progress(ProgressKind.SECONDS, int(self.elapsed() + _EPS))

    def reset(self):
        self._debouncer.reset()
        self._accumulated = 0.0
        self._holding_since = None

    def _pause(self, now: float):
        if self._holding_since is not None:
            self._accumulated += max(0.0, now - self._holding_since)
            self._holding_since = None
