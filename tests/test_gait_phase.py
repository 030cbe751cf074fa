import pytest

from grfm_prediction.gait_phase import GaitPhase, GaitPhaseDetector, GaitPhaseSnapshot, LeadingLeg


@pytest.mark.parametrize("value, expected", [
    ("double_support", GaitPhase.DOUBLE_SUPPORT),
    ("Double-Support", GaitPhase.DOUBLE_SUPPORT),
    ("LEFT SWING", GaitPhase.LEFT_SWING),
    (" right_swing ", GaitPhase.RIGHT_SWING),
    (GaitPhase.INVALID, GaitPhase.INVALID),
])
def test_parse_gait_phase(value, expected):
    assert GaitPhase.parse(value) is expected


@pytest.mark.parametrize("value, expected", [
    ("Right", LeadingLeg.RIGHT),
    ("LEFT", LeadingLeg.LEFT),
    ("invalid", LeadingLeg.INVALID),
])
def test_parse_leading_leg(value, expected):
    assert LeadingLeg.parse(value) is expected


def test_parse_rejects_unknown_values():
    with pytest.raises(ValueError, match="Unknown gait phase"):
        GaitPhase.parse("stance")
    with pytest.raises(ValueError, match="Unknown leading leg"):
        LeadingLeg.parse("both")


def test_snapshot_defaults_to_not_ready():
    snapshot = GaitPhaseSnapshot()
    assert not snapshot.is_detector_ready()
    assert snapshot.phase is GaitPhase.INVALID
    assert snapshot.leading_leg is LeadingLeg.INVALID


def test_detector_protocol():
    assert isinstance(GaitPhaseSnapshot(), GaitPhaseDetector)
