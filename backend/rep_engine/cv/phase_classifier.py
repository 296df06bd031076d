"""
Per-exercise phase classifiers.

Each classifier maps one KeypointFrame to a discrete Phase using a small
set of geometric features (joint angles, vertical offsets, widths).

HYSTERESIS:
Every classifier has a DEAD-ZONE between "clearly phase A" and "clearly
phase B". Frames inside the dead-zone are classified UNKNOWN instead of
guessing, so noise near a threshold cannot flip-flop the phase.

FORM FEEDBACK:
Alongside the phase, every classifier leaves a short coaching message for
the frame in `last_feedback` ("Lift your hips higher"). Form problems take
priority over movement cues. Frames with missing joints have no feedback.

Classifiers are plain strategy objects selected from the exercise registry
(rep_engine.cv.exercises) when a session starts. They share one contract:

    classify(frame) -> Phase
    last_feedback: Optional[str]
    reset()

Smoothing state is explicit (a SmootherBank per classifier) and is cleared
by reset().
"""

import logging
from enum import Enum
from typing import Optional, Protocol, Tuple

from rep_engine.cv.feature_smoother import SmootherBank
from rep_engine.cv.keypoints import Joint, KeypointFrame, angle_3pt, mean_bilateral_angle

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Classified body position for one frame."""
    UP = "up"
    DOWN = "down"
    HOLDING = "holding"
    BROKEN = "broken"
    UNKNOWN = "unknown"


class PhaseClassifier(Protocol):
    """Contract shared by all exercise classifiers."""

    last_feedback: Optional[str]

    def classify(self, frame: KeypointFrame) -> Phase:
        ...

    def reset(self) -> None:
        ...


Point = Tuple[float, float]


def _center(frame: KeypointFrame, left: Joint, right: Joint) -> Optional[Point]:
    """Midpoint of a joint pair, falling back to whichever side is visible."""
    mid = frame.midpoint(left, right)
    if mid is not None:
        return mid
    kp = frame.get(left) or frame.get(right)
    return kp.point if kp is not None else None


def _width(frame: KeypointFrame, left: Joint, right: Joint) -> Optional[float]:
    a, b = frame.get(left), frame.get(right)
    if a is None or b is None:
        return None
    return abs(a.x - b.x)


_LEFT_ELBOW = (Joint.LEFT_SHOULDER, Joint.LEFT_ELBOW, Joint.LEFT_WRIST)
_RIGHT_ELBOW = (Joint.RIGHT_SHOULDER, Joint.RIGHT_ELBOW, Joint.RIGHT_WRIST)
_LEFT_KNEE = (Joint.LEFT_HIP, Joint.LEFT_KNEE, Joint.LEFT_ANKLE)
_RIGHT_KNEE = (Joint.RIGHT_HIP, Joint.RIGHT_KNEE, Joint.RIGHT_ANKLE)


# =============================================================================
# Push-ups
# =============================================================================

class PushUpClassifier:
    """
    Push-up phase from elbow flexion, gated on body alignment.

    Form checks (both must pass, otherwise UNKNOWN):
    - Shoulder-hip-lower body line >= 160 deg (no sagging or piking)
    - Shoulder and hip at similar height (body horizontal, not standing)

    Elbow thresholds: DOWN below 100 deg, UP above 140 deg.
    """

    DOWN_ANGLE = 100.0
    UP_ANGLE = 140.0
    MIN_BODY_LINE = 160.0
    MAX_VERTICAL_OFFSET = 0.15

    def __init__(self, smoothing_window: int = 5):
        self.smoothers = SmootherBank(window=smoothing_window)
        self.last_feedback: Optional[str] = None
        self._last_extreme: Optional[Phase] = None

    def classify(self, frame: KeypointFrame) -> Phase:
        self.last_feedback = None
        elbow = mean_bilateral_angle(frame, _LEFT_ELBOW, _RIGHT_ELBOW)
        shoulder = _center(frame, Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER)
        hip = _center(frame, Joint.LEFT_HIP, Joint.RIGHT_HIP)
        if elbow is None or shoulder is None or hip is None:
            return Phase.UNKNOWN

        # Prefer ankles for the full body line, then knees
        lower = (
            _center(frame, Joint.LEFT_ANKLE, Joint.RIGHT_ANKLE)
            or _center(frame, Joint.LEFT_KNEE, Joint.RIGHT_KNEE)
            or hip
        )

        elbow = self.smoothers.update("elbow", elbow)
        body_line = angle_3pt(shoulder, hip, lower)
        vertical_offset = abs(hip[1] - shoulder[1])

        has_form = body_line >= self.MIN_BODY_LINE and vertical_offset < self.MAX_VERTICAL_OFFSET

        logger.debug(
            f"push-up: elbow={elbow:.1f}, body_line={body_line:.1f}, "
            f"vertical={vertical_offset:.3f}, form={has_form}"
        )

        if not has_form:
            phase = Phase.UNKNOWN
        elif elbow < self.DOWN_ANGLE:
            phase = Phase.DOWN
        elif elbow > self.UP_ANGLE:
            phase = Phase.UP
        else:
            phase = Phase.UNKNOWN

        self.last_feedback = self._feedback(phase, has_form)
        if phase != Phase.UNKNOWN:
            self._last_extreme = phase
        return phase

    def _feedback(self, phase: Phase, has_form: bool) -> str:
        if not has_form:
            return "Keep body straight - form a plank line"
        if phase == Phase.DOWN:
            return "Push up - maintain form"
        if phase == Phase.UP:
            return "Lower down slowly"
        # Dead-zone: cue the direction of travel
        if self._last_extreme == Phase.UP:
            return "Keep going down"
        if self._last_extreme == Phase.DOWN:
            return "Keep pushing up"
        return "Get into push-up position"

    def reset(self):
        self.smoothers.reset()
        self.last_feedback = None
        self._last_extreme = None


# =============================================================================
# Squats
# =============================================================================

class SquatClassifier:
    """Squat phase from knee flexion: DOWN below 100 deg, UP above 160 deg."""

    DOWN_ANGLE = 100.0
    UP_ANGLE = 160.0

    def __init__(self, smoothing_window: int = 5):
        self.smoothers = SmootherBank(window=smoothing_window)
        self.last_feedback: Optional[str] = None
        self._last_extreme: Optional[Phase] = None

    def classify(self, frame: KeypointFrame) -> Phase:
        self.last_feedback = None
        knee = mean_bilateral_angle(frame, _LEFT_KNEE, _RIGHT_KNEE)
        if knee is None:
            return Phase.UNKNOWN
        knee = self.smoothers.update("knee", knee)

        if knee < self.DOWN_ANGLE:
            phase = Phase.DOWN
            self.last_feedback = "Stand up"
        elif knee > self.UP_ANGLE:
            phase = Phase.UP
            self.last_feedback = "Squat down"
        else:
            phase = Phase.UNKNOWN
            if self._last_extreme == Phase.UP:
                self.last_feedback = "Keep going down"
            elif self._last_extreme == Phase.DOWN:
                self.last_feedback = "Stand up"
            else:
                self.last_feedback = "Get ready for squats"

        if phase != Phase.UNKNOWN:
            self._last_extreme = phase
        return phase

    def reset(self):
        self.smoothers.reset()
        self.last_feedback = None
        self._last_extreme = None


# =============================================================================
# Plank (isometric)
# =============================================================================

class PlankClassifier:
    """
    Plank hold detection.

    Posture checks (any failure = BROKEN):
    1. Body horizontal: shoulder-hip vertical offset < 0.08
    2. Not standing: ankles no more than 0.15 below shoulders
    3. Arms supporting: elbows/wrists at or below shoulder level
    4. Legs straight: knee-hip vertical offset < 0.06

    Torso line (shoulder-hip-ankle angle):
    - >= 160 deg: HOLDING
    - <  150 deg: BROKEN (sagging or piking)
    - in between: UNKNOWN

    Sagging and piking are told apart for feedback by where the hip sits
    relative to the straight shoulder-ankle line.
    """

    HOLD_ANGLE = 160.0
    BREAK_ANGLE = 150.0
    GOOD_ANGLE = 165.0
    MAX_VERTICAL_OFFSET = 0.08
    MAX_ANKLE_DROP = 0.15
    ARM_SUPPORT_MARGIN = 0.2
    MAX_KNEE_OFFSET = 0.06
    HIP_LINE_TOLERANCE = 0.04

    def __init__(self, smoothing_window: int = 5):
        self.smoothers = SmootherBank(window=smoothing_window)
        self.last_feedback: Optional[str] = None

    def classify(self, frame: KeypointFrame) -> Phase:
        self.last_feedback = None
        shoulder = _center(frame, Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER)
        hip = _center(frame, Joint.LEFT_HIP, Joint.RIGHT_HIP)
        ankle = _center(frame, Joint.LEFT_ANKLE, Joint.RIGHT_ANKLE)
        if shoulder is None or hip is None or ankle is None:
            return Phase.UNKNOWN

        knee = _center(frame, Joint.LEFT_KNEE, Joint.RIGHT_KNEE) or hip
        elbow = _center(frame, Joint.LEFT_ELBOW, Joint.RIGHT_ELBOW)
        wrist = _center(frame, Joint.LEFT_WRIST, Joint.RIGHT_WRIST)

        # Lower of elbow/wrist is the support point
        support_ys = [p[1] for p in (elbow, wrist) if p is not None]
        arm_support_y = max(support_ys) if support_ys else shoulder[1]

        horizontal = abs(hip[1] - shoulder[1]) < self.MAX_VERTICAL_OFFSET
        standing = (ankle[1] - shoulder[1]) >= self.MAX_ANKLE_DROP
        arms_supporting = arm_support_y >= shoulder[1] - self.ARM_SUPPORT_MARGIN
        legs_straight = abs(knee[1] - hip[1]) < self.MAX_KNEE_OFFSET

        body_angle = self.smoothers.update("body", angle_3pt(shoulder, hip, ankle))

        logger.debug(
            f"plank: horiz={horizontal}, standing={standing}, "
            f"arms={arms_supporting}, legs={legs_straight}, body={body_angle:.1f}"
        )

        posture_ok = horizontal and not standing and arms_supporting and legs_straight
        if not posture_ok:
            phase = Phase.BROKEN
        elif body_angle >= self.HOLD_ANGLE:
            phase = Phase.HOLDING
        elif body_angle < self.BREAK_ANGLE:
            phase = Phase.BROKEN
        else:
            phase = Phase.UNKNOWN

        if phase == Phase.HOLDING:
            if body_angle < self.GOOD_ANGLE:
                self.last_feedback = "Good! Straighten hips slightly"
            else:
                self.last_feedback = "Perfect! Keep holding!"
        elif standing:
            self.last_feedback = "Get into plank position"
        else:
            self.last_feedback = (
                self._hip_line_feedback(shoulder, hip, ankle)
                or (None if legs_straight else "Straighten your legs")
                or (None if arms_supporting else "Support yourself on your forearms or hands")
                or "Align your body straight"
            )
        return phase

    def _hip_line_feedback(self, shoulder: Point, hip: Point, ankle: Point) -> Optional[str]:
        dx = ankle[0] - shoulder[0]
        if abs(dx) < 1e-6:
            return None
        line_y = shoulder[1] + (hip[0] - shoulder[0]) / dx * (ankle[1] - shoulder[1])
        deviation = hip[1] - line_y
        # Image y grows downwards: positive deviation is a sagging hip
        if deviation > self.HIP_LINE_TOLERANCE:
            return "Lift your hips higher"
        if deviation < -self.HIP_LINE_TOLERANCE:
            return "Lower your hips - avoid piking"
        return None

    def reset(self):
        self.smoothers.reset()
        self.last_feedback = None


# =============================================================================
# Jumping jacks
# =============================================================================

class JumpingJackClassifier:
    """
    Jumping jack phase from arm raise and leg spread.

    All measurements are relative to body height / hip width so they hold
    across body sizes and camera distances.

    - Arms up: wrists > 15% of body height above shoulders (elbows above too)
    - Arms down: wrists < 5% of body height above shoulders
    - Legs apart: ankle spread > 1.4x hip width
    - Legs together: ankle spread < 1.1x hip width

    UP = apart (arms up), DOWN = together (arms down). Arms are the primary
    indicator; legs only veto when they clearly disagree.
    """

    ARMS_UP_RATIO = 0.15
    ARMS_DOWN_RATIO = 0.05
    LEGS_APART_RATIO = 1.4
    LEGS_TOGETHER_RATIO = 1.1
    MIN_BODY_HEIGHT = 1e-3

    FEEDBACK = {
        Phase.UP: "Jump in!",
        Phase.DOWN: "Jump out!",
        Phase.UNKNOWN: "Keep going!",
    }

    def __init__(self, smoothing_window: int = 5):
        self.smoothers = SmootherBank(window=smoothing_window)
        self.last_feedback: Optional[str] = None

    def classify(self, frame: KeypointFrame) -> Phase:
        self.last_feedback = None
        shoulder = _center(frame, Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER)
        wrist = _center(frame, Joint.LEFT_WRIST, Joint.RIGHT_WRIST)
        ankle = _center(frame, Joint.LEFT_ANKLE, Joint.RIGHT_ANKLE)
        ankle_width = _width(frame, Joint.LEFT_ANKLE, Joint.RIGHT_ANKLE)
        if shoulder is None or wrist is None or ankle is None or ankle_width is None:
            return Phase.UNKNOWN

        body_height = abs(ankle[1] - shoulder[1])
        if body_height < self.MIN_BODY_HEIGHT:
            return Phase.UNKNOWN

        hip_width = _width(frame, Joint.LEFT_HIP, Joint.RIGHT_HIP)
        if hip_width is None:
            hip_width = _width(frame, Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER)
        if not hip_width:
            return Phase.UNKNOWN

        elbow = frame.midpoint(Joint.LEFT_ELBOW, Joint.RIGHT_ELBOW)
        elbows_above = elbow is None or elbow[1] < shoulder[1]

        arm_raise = self.smoothers.update("arm_raise", (shoulder[1] - wrist[1]) / body_height)
        spread = self.smoothers.update("spread", ankle_width / hip_width)

        arms_up = arm_raise > self.ARMS_UP_RATIO and elbows_above
        arms_down = arm_raise < self.ARMS_DOWN_RATIO
        legs_apart = spread > self.LEGS_APART_RATIO
        legs_together = spread < self.LEGS_TOGETHER_RATIO
        legs_clear = legs_apart or legs_together

        if arms_up and (legs_apart or not legs_clear):
            phase = Phase.UP
        elif arms_down and (legs_together or not legs_clear):
            phase = Phase.DOWN
        else:
            phase = Phase.UNKNOWN

        self.last_feedback = self.FEEDBACK[phase]
        return phase

    def reset(self):
        self.smoothers.reset()
        self.last_feedback = None


# =============================================================================
# Burpees
# =============================================================================

class BurpeeClassifier:
    """
    Burpee phase reduced to its two anchor positions.

    - UP (standing): knees extended > 140 deg, body not horizontal
    - DOWN (plank): body horizontal, straight line >= 150 deg, knees > 130 deg

    Squat/jump sub-phases are deliberately ignored; people step or jump
    through them too differently to classify reliably.
    """

    STANDING_KNEE = 140.0
    PLANK_KNEE = 130.0
    MIN_BODY_LINE = 150.0
    MAX_VERTICAL_OFFSET = 0.12

    FEEDBACK = {
        Phase.UP: "Squat down and place hands on floor",
        Phase.DOWN: "Jump feet in, then stand up",
        Phase.UNKNOWN: "Complete the burpee motion",
    }

    def __init__(self, smoothing_window: int = 5):
        self.smoothers = SmootherBank(window=smoothing_window)
        self.last_feedback: Optional[str] = None

    def classify(self, frame: KeypointFrame) -> Phase:
        self.last_feedback = None
        shoulder = _center(frame, Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER)
        hip = _center(frame, Joint.LEFT_HIP, Joint.RIGHT_HIP)
        ankle = _center(frame, Joint.LEFT_ANKLE, Joint.RIGHT_ANKLE)
        knee = mean_bilateral_angle(frame, _LEFT_KNEE, _RIGHT_KNEE)
        if shoulder is None or hip is None or ankle is None or knee is None:
            return Phase.UNKNOWN

        knee = self.smoothers.update("knee", knee)
        horizontal = abs(hip[1] - shoulder[1]) < self.MAX_VERTICAL_OFFSET
        straight = angle_3pt(shoulder, hip, ankle) >= self.MIN_BODY_LINE

        if horizontal and straight and knee > self.PLANK_KNEE:
            phase = Phase.DOWN
        elif knee > self.STANDING_KNEE and not horizontal:
            phase = Phase.UP
        else:
            phase = Phase.UNKNOWN

        self.last_feedback = self.FEEDBACK[phase]
        return phase

    def reset(self):
        self.smoothers.reset()
        self.last_feedback = None


# =============================================================================
# Glute bridge
# =============================================================================

class GluteBridgeClassifier:
    """
    Glute bridge phase from hip extension (shoulder-hip-knee angle).

    Form checks (any failure = UNKNOWN):
    - Supine: shoulders lower in frame than knees
    - Knee flexion within 75-130 deg
    - Level pelvis: left/right hip height difference < 0.04

    UP above 160 deg with hips raised above shoulders, DOWN below 130 deg.
    """

    UP_ANGLE = 160.0
    DOWN_ANGLE = 130.0
    MIN_KNEE = 75.0
    MAX_KNEE = 130.0
    MAX_PELVIC_TILT = 0.04

    def __init__(self, smoothing_window: int = 5):
        self.smoothers = SmootherBank(window=smoothing_window)
        self.last_feedback: Optional[str] = None

    def classify(self, frame: KeypointFrame) -> Phase:
        self.last_feedback = None
        shoulder = _center(frame, Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER)
        hip = _center(frame, Joint.LEFT_HIP, Joint.RIGHT_HIP)
        knee_pt = _center(frame, Joint.LEFT_KNEE, Joint.RIGHT_KNEE)
        knee = mean_bilateral_angle(frame, _LEFT_KNEE, _RIGHT_KNEE)
        if shoulder is None or hip is None or knee_pt is None or knee is None:
            return Phase.UNKNOWN

        supine = shoulder[1] > knee_pt[1]
        knee_ok = self.MIN_KNEE <= knee <= self.MAX_KNEE
        left_hip, right_hip = frame.get(Joint.LEFT_HIP), frame.get(Joint.RIGHT_HIP)
        level_pelvis = (
            left_hip is None or right_hip is None
            or abs(left_hip.y - right_hip.y) < self.MAX_PELVIC_TILT
        )

        hip_angle = self.smoothers.update("hip", angle_3pt(shoulder, hip, knee_pt))

        if not supine:
            self.last_feedback = "Lie on your back with knees bent"
            return Phase.UNKNOWN
        if not knee_ok:
            if knee < self.MIN_KNEE:
                self.last_feedback = "Move feet further from hips - knees should be around 90-120 deg"
            else:
                self.last_feedback = "Move feet closer to hips - knees should be around 90-120 deg"
            return Phase.UNKNOWN
        if not level_pelvis:
            self.last_feedback = "Keep your hips level"
            return Phase.UNKNOWN

        if hip_angle > self.UP_ANGLE and hip[1] < shoulder[1]:
            self.last_feedback = "Perfect! Hold and squeeze glutes"
            return Phase.UP
        if hip_angle < self.DOWN_ANGLE:
            self.last_feedback = "Lift hips up - aim for straight body line"
            return Phase.DOWN
        self.last_feedback = "Keep lifting higher - squeeze glutes at the top"
        return Phase.UNKNOWN

    def reset(self):
        self.smoothers.reset()
        self.last_feedback = None
