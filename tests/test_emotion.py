import pytest

from core.emotion import scores_from_categories, synthesize_face_metrics
from conftest import DummyCategory, SMILE_SCORES

ALL_NAMES = [
    "mouthSmileLeft", "mouthSmileRight", "cheekSquintLeft", "cheekSquintRight",
    "mouthFrownLeft", "mouthFrownRight", "browDownLeft", "browDownRight", "jawForward",
    "browOuterUpLeft", "browOuterUpRight", "eyeWideLeft", "eyeWideRight",
]


def test_empty_mapping_defaults_to_zero():
    m = synthesize_face_metrics({})
    assert (m.joy, m.sorrow, m.anger, m.surprise) == (0.0, 0.0, 0.0, 0.0)
    assert m.eye_openness == pytest.approx(0.5)
    assert m.head_tilt == 0.0


def test_saturated_scores_are_clamped():
    m = synthesize_face_metrics({n: 1.0 for n in ALL_NAMES})
    for v in (m.joy, m.sorrow, m.anger, m.surprise):
        assert 0.0 <= v <= 1.0
    assert m.joy == 1.0
    # eye openness is intentionally not clamped
    assert m.eye_openness == pytest.approx(1.5)


def test_eye_openness_offset():
    m = synthesize_face_metrics({"eyeWideLeft": 0.3, "eyeWideRight": 0.5})
    assert m.eye_openness == pytest.approx(0.9)


def test_smile_scenario_saturates_joy():
    m = synthesize_face_metrics(SMILE_SCORES)
    assert m.joy == pytest.approx(1.0)
    assert m.sorrow == 0.0 and m.anger == 0.0


def test_anger_uses_three_way_average():
    m = synthesize_face_metrics({"browDownLeft": 0.3, "browDownRight": 0.3, "jawForward": 0.0})
    assert m.anger == pytest.approx(0.4)
    # brow down also feeds sorrow over four terms
    assert m.sorrow == pytest.approx(0.3)


def test_scores_from_categories_first_wins():
    cats = [DummyCategory("jawForward", 0.2), DummyCategory("jawForward", 0.9), DummyCategory("eyeWideLeft", 0.1)]
    assert scores_from_categories(cats) == {"jawForward": 0.2, "eyeWideLeft": 0.1}
    assert scores_from_categories(None) == {}
