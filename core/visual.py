"""Visualization helpers for the live camera overlay.

- draw_face_mesh: face tessellation, eyes and face oval from FaceLandmarker output
- draw_status: tracking badge + live joy / eye-openness readout, analyzing banner
- draw_result_panel: compact text panel for a merged AnalysisResult

All helpers return an annotated copy; the input frame is left untouched.
"""
from __future__ import annotations
from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from core.models import AnalysisResult, AppState, FaceMetrics

Connections = Dict[str, List[Tuple[int, int]]]

# (connection set, BGR color, thickness) in draw order
MESH_STYLE: List[Tuple[str, Tuple[int, int, int], int]] = [
    ("tessellation", (192, 192, 192), 1),
    ("right_eye", (241, 102, 99), 2),
    ("left_eye", (241, 102, 99), 2),
    ("face_oval", (224, 224, 224), 2),
]

GREEN = (0, 200, 0)
RED = (0, 0, 255)
WHITE = (255, 255, 255)
PRIMARY = (241, 102, 99)


@lru_cache(maxsize=1)
def face_mesh_connections() -> Connections:
    """Connection index pairs from MediaPipe's FaceLandmarksConnections."""
    from mediapipe.tasks.python.vision.face_landmarker import FaceLandmarksConnections as C

    def _pairs(conns) -> List[Tuple[int, int]]:
        return [(int(c.start), int(c.end)) for c in conns]

    return {
        "tessellation": _pairs(C.FACE_LANDMARKS_TESSELATION),
        "right_eye": _pairs(C.FACE_LANDMARKS_RIGHT_EYE),
        "left_eye": _pairs(C.FACE_LANDMARKS_LEFT_EYE),
        "face_oval": _pairs(C.FACE_LANDMARKS_FACE_OVAL),
    }


def draw_face_mesh(frame: np.ndarray,
                   face_landmarks: Sequence[Sequence] | None,
                   connections: Optional[Connections] = None) -> np.ndarray:
    """Draw mesh connectors for every detected face.

    Args:
        frame: BGR image
        face_landmarks: per-face lists of normalized landmarks (objects with .x/.y)
        connections: connection sets keyed like MESH_STYLE; defaults to MediaPipe's

    Returns:
        Annotated copy of the frame (unchanged copy when no face is given)
    """
    out = frame.copy()
    if not face_landmarks:
        return out
    if connections is None:
        connections = face_mesh_connections()

    h, w = out.shape[:2]
    for landmarks in face_landmarks:
        pts = [(int(lm.x * w), int(lm.y * h)) for lm in landmarks]
        for name, color, thickness in MESH_STYLE:
            for start, end in connections.get(name, []):
                if start < len(pts) and end < len(pts):
                    cv2.line(out, pts[start], pts[end], color, thickness, cv2.LINE_AA)
    return out


def draw_status(frame: np.ndarray,
                metrics: Optional[FaceMetrics],
                state: Optional[AppState] = None) -> np.ndarray:
    """Tracking badge, live readout and (while analyzing) a banner."""
    out = frame.copy()
    h, w = out.shape[:2]

    if metrics is None:
        cv2.putText(out, "SEARCHING...", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, RED, 2, cv2.LINE_AA)
    else:
        cv2.putText(out, "FACE TRACKED", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, GREEN, 2, cv2.LINE_AA)
        readout = f"Joy: {metrics.joy * 100:.0f}% | Eyes: {metrics.eye_openness * 100:.0f}%"
        cv2.putText(out, readout, (10, 60), cv2.FONT_HERSHEY_SIMPLEX, 0.6, WHITE, 1, cv2.LINE_AA)

    if state == AppState.ANALYZING:
        cv2.putText(out, "ANALYZING...", (10, max(0, h - 20)), cv2.FONT_HERSHEY_SIMPLEX, 0.8, PRIMARY, 2, cv2.LINE_AA)
    return out


def draw_result_panel(frame: np.ndarray,
                      result: Optional[AnalysisResult] = None,
                      error: Optional[str] = None) -> np.ndarray:
    """Right-aligned text panel with the merged analysis, or the error message."""
    out = frame.copy()
    h, w = out.shape[:2]
    if result is None and not error:
        return out

    if error:
        lines = [error]
        color = RED
    else:
        m = result.metrics
        lines = [
            f"{result.sentiment.primary} ({result.sentiment.confidence:.0f}%)",
            f"Age {result.demographics.age_range} | {result.demographics.gender_prediction}",
            f"Vibe: {result.aesthetics.vibe}",
            f"Joy {m.joy * 100:.0f} Sorrow {m.sorrow * 100:.0f} Anger {m.anger * 100:.0f} Surprise {m.surprise * 100:.0f}",
            f"Music: {result.recommendations.music}",
            f"Activity: {result.recommendations.activity}",
        ]
        color = WHITE

    x = max(0, w // 2)
    y = 30
    for line in lines:
        cv2.putText(out, line, (x, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1, cv2.LINE_AA)
        y += 22
    return out
