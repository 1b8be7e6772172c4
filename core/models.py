"""
Pydantic data models for metrics, remote analysis and API IO.
"""
from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class AppState(str, Enum):
    LOADING_MODEL = "LOADING_MODEL"
    IDLE = "IDLE"
    CAPTURING = "CAPTURING"
    ANALYZING = "ANALYZING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class FaceMetrics(BaseModel):
    """Emotion intensities synthesized from one frame's blendshapes."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    joy: float = 0.0
    sorrow: float = 0.0
    anger: float = 0.0
    surprise: float = 0.0
    eye_openness: float = Field(0.5, alias="eyeOpenness")
    head_tilt: float = Field(0.0, alias="headTilt")


# remote (Gemini) response schema; metrics are supplied locally


class Sentiment(BaseModel):
    primary: str = Field(description="Primary emotion")
    confidence: float = Field(description="Model confidence 0-100")
    description: str = Field(description="Nuanced description of the expression")


class Demographics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    age_range: str = Field(alias="ageRange", description="Tight age range, at most 3 years wide (e.g. 23-25)")
    gender_prediction: str = Field(alias="genderPrediction", description="Visual prediction")


class Aesthetics(BaseModel):
    vibe: str = Field(description="Visual style or archetype")
    colors: List[str] = Field(description="Color palette")
    accessories: List[str] = Field(description="Visible accessories")


class Recommendations(BaseModel):
    music: str = Field(description="Recommended track")
    activity: str = Field(description="Recommended activity")


class RemoteAnalysis(BaseModel):
    sentiment: Sentiment
    demographics: Demographics
    aesthetics: Aesthetics
    recommendations: Recommendations


class AnalysisResult(RemoteAnalysis):
    metrics: FaceMetrics


# session view for the API


class SessionStatus(BaseModel):
    state: AppState
    camera_available: bool
    model_ready: bool
    face_tracked: bool
    metrics: Optional[FaceMetrics] = None
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None
