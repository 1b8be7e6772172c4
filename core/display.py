"""
Chart-ready display payload for a merged AnalysisResult.
"""
from __future__ import annotations
from typing import Dict

from core.models import AnalysisResult

EMOTION_AXES = [
    ("joy", "Joy"),
    ("sorrow", "Sorrow"),
    ("anger", "Anger"),
    ("surprise", "Surprise"),
]


def build_display_payload(result: AnalysisResult) -> Dict:
    """
    Flatten a result into what the result card shows:
    headline, emotion radar (0-100), indicator bars, aesthetics and recommendations.
    """
    m = result.metrics
    emotions = [
        {"subject": label, "value": round(getattr(m, key) * 100), "full_mark": 100}
        for key, label in EMOTION_AXES
    ]
    indicators = [
        {"name": "AI confidence", "value": result.sentiment.confidence},
        # eye openness is not clamped and may exceed 100
        {"name": "Eye openness", "value": round(m.eye_openness * 100)},
    ]
    return {
        "headline": {
            "primary": result.sentiment.primary,
            "description": result.sentiment.description,
            "age_range": result.demographics.age_range,
            "gender_prediction": result.demographics.gender_prediction,
        },
        "emotions": emotions,
        "indicators": indicators,
        "aesthetics": {
            "vibe": result.aesthetics.vibe,
            "colors": list(result.aesthetics.colors),
            "accessories": list(result.aesthetics.accessories),
        },
        "recommendations": {
            "music": result.recommendations.music,
            "activity": result.recommendations.activity,
        },
    }
