"""Tests for per-exercise phase classifiers."""

import pytest

from rep_engine.cv.exercises import EXERCISES, ExerciseKind, ExerciseType, get_profile
from rep_engine.cv.keypoints import KeypointFrame
from rep_engine.cv.phase_classifier import (
    BurpeeClassifier,
    GluteBridgeClassifier,
    JumpingJackClassifier,
    Phase,
    PlankClassifier,
    PushUpClassifier,
    SquatClassifier,
)
from rep_engine.errors import ConfigurationError
from conftest import (
    BURPEE_PLANK,
    BURPEE_STANDING,
    GLUTE_BRIDGE_DOWN,
    GLUTE_BRIDGE_UP,
    JUMPING_JACK_DOWN,
    JUMPING_JACK_UP,
    PLANK_HOLDING,
    PLANK_SAGGING,
    PUSH_UP_DOWN,
    PUSH_UP_UP,
    SQUAT_DOWN,
    SQUAT_UP,
    make_frame,
)


def classify(classifier, points, t=0.0):
    return classifier.classify(make_frame(t, points))


@pytest.mark.parametrize(
    "classifier_cls, points, expected",
    [
        (PushUpClassifier, PUSH_UP_UP, Phase.UP),
        (PushUpClassifier, PUSH_UP_DOWN, Phase.DOWN),
        (SquatClassifier, SQUAT_UP, Phase.UP),
        (SquatClassifier, SQUAT_DOWN, Phase.DOWN),
        (PlankClassifier, PLANK_HOLDING, Phase.HOLDING),
        (PlankClassifier, PLANK_SAGGING, Phase.BROKEN),
        (JumpingJackClassifier, JUMPING_JACK_UP, Phase.UP),
        (JumpingJackClassifier, JUMPING_JACK_DOWN, Phase.DOWN),
        (BurpeeClassifier, BURPEE_STANDING, Phase.UP),
        (BurpeeClassifier, BURPEE_PLANK, Phase.DOWN),
        (GluteBridgeClassifier, GLUTE_BRIDGE_UP, Phase.UP),
        (GluteBridgeClassifier, GLUTE_BRIDGE_DOWN, Phase.DOWN),
    ],
)
def test_reference_poses(classifier_cls, points, expected):
    assert classify(classifier_cls(smoothing_window=1), points) == expected


@pytest.mark.parametrize(
    "classifier_cls",
    [
        PushUpClassifier,
        SquatClassifier,
        PlankClassifier,
        JumpingJackClassifier,
        BurpeeClassifier,
        GluteBridgeClassifier,
    ],
)
def test_empty_frame_is_unknown(classifier_cls):
    classifier = classifier_cls()
    assert classifier.classify(KeypointFrame.from_mapping(0.0, {})) == Phase.UNKNOWN
    assert classifier.last_feedback is None


class TestPushUps:
    def test_dead_zone_is_unknown(self):
        # Elbow at 120 deg sits between the down and up thresholds
        points = {**PUSH_UP_UP, "elbow": (0.2711, 0.55), "wrist": (0.3, 0.6)}
        assert classify(PushUpClassifier(smoothing_window=1), points) == Phase.UNKNOWN

    def test_standing_is_unknown(self):
        standing = {
            "nose": (0.5, 0.1),
            "shoulder": (0.5, 0.2),
            "elbow": (0.5, 0.35),
            "wrist": (0.5, 0.5),
            "hip": (0.5, 0.5),
            "knee": (0.5, 0.7),
            "ankle": (0.5, 0.9),
        }
        assert classify(PushUpClassifier(smoothing_window=1), standing) == Phase.UNKNOWN

    def test_piked_hips_are_unknown(self):
        piked = {**PUSH_UP_UP, "hip": (0.5, 0.4)}
        assert classify(PushUpClassifier(smoothing_window=1), piked) == Phase.UNKNOWN

    def test_smoothing_keeps_phase_on_step_change(self):
        classifier = PushUpClassifier(smoothing_window=5)
        ups = [classify(classifier, PUSH_UP_UP, t=i * 0.02) for i in range(5)]
        downs = [classify(classifier, PUSH_UP_DOWN, t=0.1 + i * 0.02) for i in range(5)]
        assert ups == [Phase.UP] * 5
        assert downs == [Phase.DOWN] * 5


class TestSquats:
    def test_deep_squat_is_down(self):
        deep = {**SQUAT_DOWN, "hip": (0.35, 0.78)}
        assert classify(SquatClassifier(smoothing_window=1), deep) == Phase.DOWN

    def test_half_squat_is_unknown(self):
        half = {**SQUAT_UP, "hip": (0.4, 0.53)}
        assert classify(SquatClassifier(smoothing_window=1), half) == Phase.UNKNOWN


class TestPlank:
    def test_standing_breaks_hold(self):
        standing = {
            "shoulder": (0.5, 0.2),
            "elbow": (0.5, 0.35),
            "wrist": (0.5, 0.5),
            "hip": (0.5, 0.5),
            "knee": (0.5, 0.7),
            "ankle": (0.5, 0.9),
        }
        assert classify(PlankClassifier(smoothing_window=1), standing) == Phase.BROKEN

    def test_bent_knees_break_hold(self):
        kneeling = {**PLANK_HOLDING, "knee": (0.6, 0.58)}
        assert classify(PlankClassifier(smoothing_window=1), kneeling) == Phase.BROKEN

    def test_missing_ankles_is_unknown(self):
        points = {k: v for k, v in PLANK_HOLDING.items() if k != "ankle"}
        assert classify(PlankClassifier(smoothing_window=1), points) == Phase.UNKNOWN


class TestJumpingJacks:
    def test_arms_up_legs_together_is_unknown(self):
        mixed = {
            **JUMPING_JACK_UP,
            "left_ankle": JUMPING_JACK_DOWN["left_ankle"],
            "right_ankle": JUMPING_JACK_DOWN["right_ankle"],
        }
        assert classify(JumpingJackClassifier(smoothing_window=1), mixed) == Phase.UNKNOWN

    def test_arms_at_shoulder_height_is_unknown(self):
        halfway = {
            **JUMPING_JACK_DOWN,
            "left_wrist": (0.3, 0.25), "right_wrist": (0.7, 0.25),
            "left_elbow": (0.38, 0.28), "right_elbow": (0.62, 0.28),
        }
        assert classify(JumpingJackClassifier(smoothing_window=1), halfway) == Phase.UNKNOWN


class TestGluteBridge:
    def test_standing_is_unknown(self):
        standing = {
            "shoulder": (0.5, 0.2),
            "hip": (0.5, 0.5),
            "knee": (0.5, 0.7),
            "ankle": (0.5, 0.9),
        }
        assert classify(GluteBridgeClassifier(smoothing_window=1), standing) == Phase.UNKNOWN

    def test_tilted_pelvis_is_unknown(self):
        tilted = {**GLUTE_BRIDGE_UP, "left_hip": (0.4, 0.62), "right_hip": (0.4, 0.7)}
        tilted.pop("hip")
        assert classify(GluteBridgeClassifier(smoothing_window=1), tilted) == Phase.UNKNOWN


class TestFeedback:
    @pytest.mark.parametrize(
        "classifier_cls, points, message",
        [
            (PushUpClassifier, PUSH_UP_UP, "Lower down slowly"),
            (PushUpClassifier, PUSH_UP_DOWN, "Push up - maintain form"),
            (SquatClassifier, SQUAT_UP, "Squat down"),
            (SquatClassifier, SQUAT_DOWN, "Stand up"),
            (PlankClassifier, PLANK_HOLDING, "Perfect! Keep holding!"),
            (PlankClassifier, PLANK_SAGGING, "Lift your hips higher"),
            (JumpingJackClassifier, JUMPING_JACK_UP, "Jump in!"),
            (JumpingJackClassifier, JUMPING_JACK_DOWN, "Jump out!"),
            (BurpeeClassifier, BURPEE_STANDING, "Squat down and place hands on floor"),
            (BurpeeClassifier, BURPEE_PLANK, "Jump feet in, then stand up"),
            (GluteBridgeClassifier, GLUTE_BRIDGE_UP, "Perfect! Hold and squeeze glutes"),
            (GluteBridgeClassifier, GLUTE_BRIDGE_DOWN, "Lift hips up - aim for straight body line"),
        ],
    )
    def test_reference_pose_messages(self, classifier_cls, points, message):
        classifier = classifier_cls(smoothing_window=1)
        classify(classifier, points)
        assert classifier.last_feedback == message

    def test_push_up_form_comes_first(self):
        classifier = PushUpClassifier(smoothing_window=1)
        classify(classifier, {**PUSH_UP_UP, "hip": (0.5, 0.4)})
        assert classifier.last_feedback == "Keep body straight - form a plank line"

    def test_push_up_dead_zone_cues_direction(self):
        classifier = PushUpClassifier(smoothing_window=1)
        middle = {**PUSH_UP_UP, "elbow": (0.2711, 0.55), "wrist": (0.3, 0.6)}
        classify(classifier, PUSH_UP_UP)
        classify(classifier, middle, t=0.02)
        assert classifier.last_feedback == "Keep going down"
        classify(classifier, PUSH_UP_DOWN, t=0.04)
        classify(classifier, middle, t=0.06)
        assert classifier.last_feedback == "Keep pushing up"

    def test_half_squat_from_standing(self):
        classifier = SquatClassifier(smoothing_window=1)
        half = {**SQUAT_UP, "hip": (0.4, 0.53)}
        classify(classifier, half)
        assert classifier.last_feedback == "Get ready for squats"
        classify(classifier, SQUAT_UP, t=0.02)
        classify(classifier, half, t=0.04)
        assert classifier.last_feedback == "Keep going down"

    @pytest.mark.parametrize(
        "points, message",
        [
            ({**PLANK_HOLDING, "hip": (0.5, 0.4)}, "Lower your hips - avoid piking"),
            ({**PLANK_HOLDING, "knee": (0.6, 0.58)}, "Straighten your legs"),
            (
                {
                    "shoulder": (0.5, 0.2),
                    "elbow": (0.5, 0.35),
                    "wrist": (0.5, 0.5),
                    "hip": (0.5, 0.5),
                    "knee": (0.5, 0.7),
                    "ankle": (0.5, 0.9),
                },
                "Get into plank position",
            ),
        ],
    )
    def test_plank_posture_messages(self, points, message):
        classifier = PlankClassifier(smoothing_window=1)
        assert classify(classifier, points) == Phase.BROKEN
        assert classifier.last_feedback == message

    def test_jumping_jack_in_between(self):
        classifier = JumpingJackClassifier(smoothing_window=1)
        halfway = {
            **JUMPING_JACK_DOWN,
            "left_wrist": (0.3, 0.25), "right_wrist": (0.7, 0.25),
            "left_elbow": (0.38, 0.28), "right_elbow": (0.62, 0.28),
        }
        classify(classifier, halfway)
        assert classifier.last_feedback == "Keep going!"

    def test_glute_bridge_knee_position(self):
        classifier = GluteBridgeClassifier(smoothing_window=1)
        assert classify(classifier, {**GLUTE_BRIDGE_DOWN, "knee": (0.55, 0.72)}) == Phase.UNKNOWN
        assert classifier.last_feedback.startswith("Move feet closer to hips")

    def test_glute_bridge_tilted_pelvis(self):
        classifier = GluteBridgeClassifier(smoothing_window=1)
        tilted = {**GLUTE_BRIDGE_UP, "left_hip": (0.4, 0.62), "right_hip": (0.4, 0.7)}
        tilted.pop("hip")
        classify(classifier, tilted)
        assert classifier.last_feedback == "Keep your hips level"

    def test_reset_clears_feedback(self):
        classifier = PlankClassifier(smoothing_window=1)
        classify(classifier, PLANK_HOLDING)
        classifier.reset()
        assert classifier.last_feedback is None


def test_reset_clears_smoothing():
    classifier = SquatClassifier(smoothing_window=5)
    for i in range(5):
        classify(classifier, SQUAT_UP, t=i * 0.02)
    classifier.reset()
    assert classify(classifier, SQUAT_DOWN, t=1.0) == Phase.DOWN


class TestRegistry:
    def test_every_exercise_is_registered(self):
        assert set(EXERCISES) == set(ExerciseType)

    def test_plank_is_the_only_hold(self):
        holds = [p.exercise_type for p in EXERCISES.values() if p.kind == ExerciseKind.ISOMETRIC]
        assert holds == [ExerciseType.PLANK]

    def test_cyclic_exercises_have_a_rep_transition(self):
        for profile in EXERCISES.values():
            assert profile.is_cyclic == (profile.rep_transition is not None)

    def test_jumping_jacks_count_on_return(self):
        assert get_profile(ExerciseType.JUMPING_JACKS).rep_transition == (Phase.UP, Phase.DOWN)

    @pytest.mark.parametrize("name", ["push-ups", "Push Ups", "push_ups"])
    def test_name_normalization(self, name):
        assert get_profile(name).exercise_type == ExerciseType.PUSH_UPS

    def test_unknown_exercise(self):
        with pytest.raises(ConfigurationError):
            get_profile("deadlift")

    def test_build_classifier_returns_fresh_instances(self):
        profile = get_profile("squats")
        assert profile.build_classifier(5) is not profile.build_classifier(5)
