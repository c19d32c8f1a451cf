import pytest

from squatcore import form
from squatcore.form import FeedbackCategory, FormAnalyzer
from squatcore.joints import Joint, JointSet


class WallClock:
    def __init__(self, t=1_700_000_000.0):
        self.t = t

    def __call__(self):
        return self.t


@pytest.fixture
def wall():
    return WallClock()


@pytest.fixture
def analyzer(clock, wall):
    return FormAnalyzer(clock=clock, wall_clock=wall)


def test_perfect_form_scores_100_and_is_positive(analyzer, pose):
    result = analyzer.analyze(pose(knee_angle=70, back_lean=10, forward=0.0))
    assert result.form_score == 100
    assert result.feedback_category is FeedbackCategory.POSITIVE
    assert result.primary_feedback in form.AFFIRMATIONS
    assert result.has_good_knee_depth and result.has_good_back_posture and result.has_good_knee_tracking
    assert result.knee_angle == pytest.approx(70.0)
    assert result.back_lean_angle == pytest.approx(10.0)
    assert result.knee_forward_distance == pytest.approx(0.0, abs=1e-9)


def test_measurements_reported(analyzer, pose):
    result = analyzer.analyze(pose(knee_angle=120, back_lean=15, forward=0.03))
    assert result.knee_angle == pytest.approx(120.0)
    assert result.back_lean_angle == pytest.approx(15.0)
    assert result.knee_forward_distance == pytest.approx(0.03)


@pytest.mark.parametrize("knee,good,message", [
    (80, True, form.MSG_PERFECT_DEPTH),
    (50, True, form.MSG_EXCELLENT_DEPTH),
    (120, False, form.MSG_GO_LOWER),
])
def test_knee_depth_bands(analyzer, pose, knee, good, message):
    result = analyzer.analyze(pose(knee_angle=knee))
    assert result.has_good_knee_depth is good
    assert result.detailed_feedback[0] == message


def test_back_lean_is_top_priority(analyzer, pose):
    result = analyzer.analyze(pose(knee_angle=120, back_lean=35, forward=0.1))
    assert result.primary_feedback == form.MSG_STRAIGHTEN_BACK
    assert result.feedback_category is FeedbackCategory.CORRECTIVE
    assert result.form_score == 0


def test_knee_tracking_beats_depth(analyzer, pose):
    result = analyzer.analyze(pose(knee_angle=120, back_lean=5, forward=0.1))
    assert result.primary_feedback == form.MSG_KNEES_FORWARD
    assert result.feedback_category is FeedbackCategory.CORRECTIVE
    assert result.form_score == 33


def test_depth_message_when_only_depth_fails(analyzer, pose):
    result = analyzer.analyze(pose(knee_angle=140, back_lean=5, forward=0.0))
    assert result.primary_feedback == form.MSG_GO_LOWER
    assert result.form_score == 66


def test_detailed_feedback_order(analyzer, pose):
    result = analyzer.analyze(pose(knee_angle=140, back_lean=30, forward=0.1))
    assert result.detailed_feedback == [form.MSG_GO_LOWER, form.MSG_STRAIGHTEN_BACK, form.MSG_KNEES_FORWARD]


@pytest.mark.parametrize("knee", [40, 70, 85, 95, 150, 175])
@pytest.mark.parametrize("lean", [0, 19, 25])
@pytest.mark.parametrize("forward", [-0.02, 0.04, 0.08])
def test_form_score_only_takes_quantized_values(analyzer, pose, knee, lean, forward):
    assert analyzer.analyze(pose(knee, lean, forward)).form_score in {0, 33, 66, 100}


def test_form_score_function():
    assert form.form_score(True, True, True) == 100
    assert form.form_score(True, False, True) == 66
    assert form.form_score(False, False, True) == 33
    assert form.form_score(False, False, False) == 0


def test_too_few_joints_short_circuits(analyzer, pose):
    sparse = pose(drop=[Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER, Joint.LEFT_HIP])
    result = analyzer.analyze(sparse)
    assert result.primary_feedback == form.MSG_POSITION_YOURSELF
    assert result.feedback_category is FeedbackCategory.NEUTRAL
    assert result.form_score == 0
    assert result.knee_angle is None
    assert result.should_speak is False
    assert result.detailed_feedback == [form.MSG_NOT_ENOUGH_JOINTS]


def test_missing_shoulders_fail_back_check_but_keep_analysis(analyzer, pose):
    result = analyzer.analyze(pose(knee_angle=80, drop=[Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER]))
    assert result.primary_feedback == form.MSG_NO_TORSO
    assert result.feedback_category is FeedbackCategory.NEUTRAL
    assert result.has_good_knee_depth is True
    assert result.knee_angle == pytest.approx(80.0)
    assert result.form_score == 66


def test_single_leg_depth_uses_available_side(analyzer, pose):
    result = analyzer.analyze(pose(knee_angle=80, drop=[Joint.RIGHT_ANKLE]))
    assert result.knee_angle == pytest.approx(80.0)
    assert result.has_good_knee_tracking is False
    assert result.detailed_feedback[2] == form.MSG_NO_KNEE_ANKLE


@pytest.mark.parametrize("message,category", [
    ("Perfect squat depth!", FeedbackCategory.POSITIVE),
    ("Keep it up!", FeedbackCategory.POSITIVE),
    ("Go lower - squat deeper", FeedbackCategory.CORRECTIVE),
    ("Knees too far forward - sit back more", FeedbackCategory.CORRECTIVE),
    ("Keep back straight - reduce forward lean", FeedbackCategory.CORRECTIVE),
    ("Cannot detect torso position", FeedbackCategory.NEUTRAL),
    ("Position yourself in camera view", FeedbackCategory.NEUTRAL),
])
def test_categorize(message, category):
    assert form.categorize(message) is category


def test_affirmation_rotates_by_second(analyzer, wall):
    wall.t = 7 * 1000 + 2.9
    assert analyzer.select_affirmation() == form.AFFIRMATIONS[2]
    wall.t = 7 * 1000 + 2.1
    assert analyzer.select_affirmation() == form.AFFIRMATIONS[2]
    wall.t = 7 * 1000 + 3.0
    assert analyzer.select_affirmation() == form.AFFIRMATIONS[3]


def test_affirmations_always_positive(analyzer, pose, wall):
    for i in range(7):
        wall.t = float(7 * 100 + i)
        result = analyzer.analyze(pose(knee_angle=80))
        assert result.primary_feedback == form.AFFIRMATIONS[i]
        assert result.feedback_category is FeedbackCategory.POSITIVE


class TestSpeechGate:

    def test_corrective_spoken_when_new(self, analyzer, pose):
        assert analyzer.analyze(pose(back_lean=35)).should_speak is True
        assert analyzer.analyze(pose(knee_angle=80, forward=0.1)).should_speak is True

    def test_repeated_corrective_waits_for_cooldown(self, analyzer, pose, clock):
        assert analyzer.analyze(pose(back_lean=35)).should_speak is True
        clock.advance(1.0)
        repeat = analyzer.analyze(pose(back_lean=35))
        assert repeat.should_speak is False
        assert repeat.is_new_message is False
        clock.advance(2.0)
        assert analyzer.analyze(pose(back_lean=35)).should_speak is True

    def test_positive_needs_new_message_and_cooldown(self, analyzer, pose, clock, wall):
        assert analyzer.analyze(pose(back_lean=35)).should_speak is True

        # New message, but within cooldown of the last spoken one
        clock.advance(1.0)
        assert analyzer.analyze(pose(knee_angle=80)).should_speak is False

        # Same affirmation again after cooldown: not new
        clock.advance(3.0)
        assert analyzer.analyze(pose(knee_angle=80)).should_speak is False

        # A different affirmation after cooldown
        wall.t += 1.0
        assert analyzer.analyze(pose(knee_angle=80)).should_speak is True

    def test_positive_spoken_on_first_frame(self, analyzer, pose):
        assert analyzer.analyze(pose(knee_angle=80)).should_speak is True

    def test_neutral_never_spoken(self, analyzer, pose, clock):
        for _ in range(3):
            result = analyzer.analyze(pose(drop=[Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER]))
            assert result.feedback_category is FeedbackCategory.NEUTRAL
            assert result.should_speak is False
            clock.advance(5.0)

    def test_last_message_updated_even_when_silent(self, analyzer, pose, clock):
        analyzer.analyze(pose(back_lean=35))
        clock.advance(0.5)
        analyzer.analyze(JointSet())
        assert analyzer.last_feedback_message == form.MSG_POSITION_YOURSELF
        # Back lean is new again relative to the last message
        assert analyzer.analyze(pose(back_lean=35)).should_speak is True

    def test_reset_feedback_tracking(self, analyzer, pose):
        analyzer.analyze(pose(back_lean=35))
        analyzer.reset_feedback_tracking()
        assert analyzer.last_feedback_message == ""
        assert analyzer.last_voice_time is None


def test_convenience_wrappers(analyzer, pose):
    assert analyzer.is_in_squat_position(pose(knee_angle=100)) is True
    assert analyzer.is_in_squat_position(pose(knee_angle=150)) is False
    assert analyzer.is_in_squat_position(JointSet()) is False
    assert analyzer.form_score(pose(knee_angle=80)) == 100
    assert analyzer.quick_feedback(pose(back_lean=35)) == form.MSG_STRAIGHTEN_BACK
    message, _, category = analyzer.speech_feedback(pose(knee_angle=140))
    assert message == form.MSG_GO_LOWER
    assert category is FeedbackCategory.CORRECTIVE
