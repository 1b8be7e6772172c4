"""
REST endpoints for the live analysis session.
"""
import logging

import cv2
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from core.config import Settings
from core.display import build_display_payload
from core.models import SessionStatus
from core.session import AnalysisSession, CaptureRefused
from core.state import InvalidTransition

router = APIRouter()
settings = Settings()
logger = logging.getLogger(__name__)


def get_session(request: Request) -> AnalysisSession:
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Session not started")
    return session


@router.get("/status", response_model=SessionStatus)
async def status(session: AnalysisSession = Depends(get_session)):
    """
    Current state, camera/model readiness, live metrics, last result and error.
    """
    return session.status()


@router.get("/metrics")
async def metrics(session: AnalysisSession = Depends(get_session)):
    m = session.current_metrics
    return {"face_tracked": m is not None, "metrics": m}


@router.post("/capture")
async def capture(session: AnalysisSession = Depends(get_session)):
    """
    Capture the current frame and metrics, then run the remote analysis.

    Returns:
        dict: state, merged result and its display payload.

    Raises:
        409 when capture is refused (no face, busy, model loading);
        502 when the remote analysis failed (state is then ERROR).
    """
    logger.debug(f"[api] /capture state={session.state.value}")
    try:
        result = await session.capture()
    except CaptureRefused as e:
        raise HTTPException(status_code=409, detail=e.notice)
    if result is None:
        raise HTTPException(status_code=502, detail=session.error)
    return {
        "state": session.state,
        "result": result,
        "display": build_display_payload(result),
    }


@router.post("/reset")
async def reset(session: AnalysisSession = Depends(get_session)):
    try:
        session.reset()
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"state": session.state}


@router.get("/result/display")
async def result_display(session: AnalysisSession = Depends(get_session)):
    if session.result is None:
        raise HTTPException(status_code=404, detail="No analysis result")
    return build_display_payload(session.result)


@router.get("/overlay.jpg")
async def overlay(session: AnalysisSession = Depends(get_session)):
    """Latest camera frame with the face mesh overlay."""
    frame = session.detection.overlay
    if frame is None:
        raise HTTPException(status_code=404, detail="No frame yet")
    ok, buf = cv2.imencode(".jpg", frame)
    if not ok:
        logger.error("[api] overlay JPEG encoding failed")
        raise HTTPException(status_code=500, detail="Encoding failed")
    return Response(content=buf.tobytes(), media_type="image/jpeg")
