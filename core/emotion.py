"""
Emotion synthesis from MediaPipe blendshape scores.
"""
# core/emotion.py
from __future__ import annotations
from typing import Dict, Iterable, Mapping

from core.models import FaceMetrics

# Raw blendshape scores are low for natural expressions; amplify before clamping.
AMPLIFY = 2.0
EYE_OPENNESS_BASE = 0.5


def scores_from_categories(categories: Iterable) -> Dict[str, float]:
    """
    Turn MediaPipe ``Category`` objects (category_name, score) into a name->score map.
    The first occurrence of a name wins.
    """
    scores: Dict[str, float] = {}
    for c in categories or []:
        name = getattr(c, "category_name", None)
        if name and name not in scores:
            scores[name] = float(getattr(c, "score", 0.0) or 0.0)
    return scores


def _avg(scores: Mapping[str, float], *names: str) -> float:
    return sum(float(scores.get(n, 0.0)) for n in names) / len(names)


def _amplified(value: float) -> float:
    return max(0.0, min(value * AMPLIFY, 1.0))


def synthesize_face_metrics(scores: Mapping[str, float]) -> FaceMetrics:
    """
    Map blendshape scores to four emotion intensities plus eye openness.

    - joy: smiles + cheek squint
    - sorrow: frown + brow down
    - anger: brow down + jaw forward
    - surprise: outer brow up + wide eyes

    Emotions are amplified x2 and clamped to [0, 1]. Eye openness is the mean
    eye-wide score offset by 0.5 and is NOT clamped, so it can exceed 1.
    Missing categories count as 0.
    """
    joy = _avg(scores, "mouthSmileLeft", "mouthSmileRight", "cheekSquintLeft", "cheekSquintRight")
    sorrow = _avg(scores, "mouthFrownLeft", "mouthFrownRight", "browDownLeft", "browDownRight")
    anger = _avg(scores, "browDownLeft", "browDownRight", "jawForward")
    surprise = _avg(scores, "browOuterUpLeft", "browOuterUpRight", "eyeWideLeft", "eyeWideRight")
    eye_openness = _avg(scores, "eyeWideLeft", "eyeWideRight") + EYE_OPENNESS_BASE

    return FaceMetrics(
        joy=_amplified(joy),
        sorrow=_amplified(sorrow),
        anger=_amplified(anger),
        surprise=_amplified(surprise),
        eye_openness=eye_openness,
        head_tilt=0.0,
    )
