"""
Exercise registry.

Each supported exercise is described by an ExerciseProfile: whether it is
counted in reps (cyclic) or seconds (isometric), which joints must be
visible before detection starts, which stable phase transition completes
one rep, and which classifier strategy to build.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple, Union

from rep_engine.cv.keypoints import Joint
from rep_engine.cv.phase_classifier import (
    BurpeeClassifier,
    GluteBridgeClassifier,
    JumpingJackClassifier,
    Phase,
    PhaseClassifier,
    PlankClassifier,
    PushUpClassifier,
    SquatClassifier,
)
from rep_engine.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ExerciseType(str, Enum):
    """Supported exercises."""
    PUSH_UPS = "push_ups"
    SQUATS = "squats"
    PLANK = "plank"
    JUMPING_JACKS = "jumping_jacks"
    BURPEES = "burpees"
    GLUTE_BRIDGE = "glute_bridge"


class ExerciseKind(str, Enum):
    """How progress is measured."""
    CYCLIC = "cyclic"         # Counted in reps
    ISOMETRIC = "isometric"   # Counted in held seconds


_SHOULDERS = (Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER)
_ELBOWS = (Joint.LEFT_ELBOW, Joint.RIGHT_ELBOW)
_WRISTS = (Joint.LEFT_WRIST, Joint.RIGHT_WRIST)
_HIPS = (Joint.LEFT_HIP, Joint.RIGHT_HIP)
_KNEES = (Joint.LEFT_KNEE, Joint.RIGHT_KNEE)
_ANKLES = (Joint.LEFT_ANKLE, Joint.RIGHT_ANKLE)
_LOWER_BODY = _SHOULDERS + _HIPS + _KNEES + _ANKLES


@dataclass(frozen=True)
class ExerciseProfile:
    """Static description of one exercise."""
    exercise_type: ExerciseType
    kind: ExerciseKind
    required_joints: Tuple[Joint, ...]
    positioning_hint: str
    classifier_factory: Callable[[int], PhaseClassifier]

    # Stable transition that completes one rep (cyclic only)
    rep_transition: Optional[Tuple[Phase, Phase]] = None

    # Minimum time between two automatic reps, in seconds
    min_rep_interval: float = 0.0

    # Isometric only: a BROKEN phase resets the hold instead of pausing it
    reset_on_break: bool = False

    @property
    def is_cyclic(self) -> bool:
        return self.kind == ExerciseKind.CYCLIC

    def build_classifier(self, smoothing_window: int) -> PhaseClassifier:
        return self.classifier_factory(smoothing_window)


EXERCISES: Dict[ExerciseType, ExerciseProfile] = {
    ExerciseType.PUSH_UPS: ExerciseProfile(
        exercise_type=ExerciseType.PUSH_UPS,
        kind=ExerciseKind.CYCLIC,
        required_joints=(Joint.NOSE,) + _SHOULDERS + _ELBOWS + _WRISTS + _HIPS + _KNEES + _ANKLES,
        positioning_hint="Show your full body from the side",
        classifier_factory=PushUpClassifier,
        rep_transition=(Phase.DOWN, Phase.UP),
        min_rep_interval=0.3,
    ),
    ExerciseType.SQUATS: ExerciseProfile(
        exercise_type=ExerciseType.SQUATS,
        kind=ExerciseKind.CYCLIC,
        required_joints=_LOWER_BODY,
        positioning_hint="Step back so your legs are in frame",
        classifier_factory=SquatClassifier,
        rep_transition=(Phase.DOWN, Phase.UP),
        min_rep_interval=0.3,
    ),
    ExerciseType.PLANK: ExerciseProfile(
        exercise_type=ExerciseType.PLANK,
        kind=ExerciseKind.ISOMETRIC,
        required_joints=_LOWER_BODY,
        positioning_hint="Show your full body from the side",
        classifier_factory=PlankClassifier,
    ),
    ExerciseType.JUMPING_JACKS: ExerciseProfile(
        exercise_type=ExerciseType.JUMPING_JACKS,
        kind=ExerciseKind.CYCLIC,
        required_joints=(Joint.NOSE,) + _SHOULDERS + _WRISTS + _HIPS + _ANKLES,
        positioning_hint="Face the camera with arms and feet in frame",
        classifier_factory=JumpingJackClassifier,
        rep_transition=(Phase.UP, Phase.DOWN),
        min_rep_interval=0.25,
    ),
    ExerciseType.BURPEES: ExerciseProfile(
        exercise_type=ExerciseType.BURPEES,
        kind=ExerciseKind.CYCLIC,
        required_joints=(Joint.NOSE,) + _SHOULDERS + _ELBOWS + _WRISTS + _HIPS + _KNEES + _ANKLES,
        positioning_hint="Show your full body from the side",
        classifier_factory=BurpeeClassifier,
        rep_transition=(Phase.DOWN, Phase.UP),
        min_rep_interval=1.5,
    ),
    ExerciseType.GLUTE_BRIDGE: ExerciseProfile(
        exercise_type=ExerciseType.GLUTE_BRIDGE,
        kind=ExerciseKind.CYCLIC,
        required_joints=_LOWER_BODY,
        positioning_hint="Lie down side-on with shoulders to feet in frame",
        classifier_factory=GluteBridgeClassifier,
        rep_transition=(Phase.DOWN, Phase.UP),
        min_rep_interval=0.6,
    ),
}


def get_profile(exercise_type: Union[ExerciseType, str]) -> ExerciseProfile:
    """Look up an exercise profile, accepting enum values or names like 'push-ups'."""
    if isinstance(exercise_type, ExerciseType):
        key = exercise_type
    else:
        normalized = str(exercise_type).strip().lower().replace("-", "_").replace(" ", "_")
        try:
            key = ExerciseType(normalized)
        except ValueError:
            raise ConfigurationError(f"Unknown exercise type: {exercise_type!r}") from None
    return EXERCISES[key]
