# core/live.py
"""
Live camera window.

Runs an AnalysisSession on a local OpenCV window:
- face mesh overlay + tracking badge + live joy / eye-openness readout
- 'c' or space: capture and analyze the current frame
- 'r': reset after a result or an error
- 'q': quit (camera and model are released)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import cv2
import numpy as np

from core.camera import Camera
from core.config import Settings
from core.session import AnalysisSession, CaptureRefused
from core.state import InvalidTransition
from core.visual import draw_result_panel, draw_status

logger = logging.getLogger(__name__)

WINDOW_NAME = "Face Vibe Analysis"
CAPTURE_KEYS = (ord("c"), ord(" "))
RESET_KEY = ord("r")
QUIT_KEY = ord("q")


def _placeholder(settings: Settings, text: str) -> np.ndarray:
    canvas = np.zeros((settings.CAMERA_HEIGHT, settings.CAMERA_WIDTH, 3), dtype=np.uint8)
    cv2.putText(canvas, text, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (241, 102, 99), 2, cv2.LINE_AA)
    return canvas


def render_view(session: AnalysisSession, notice: Optional[str] = None) -> np.ndarray:
    """Compose overlay, status and result panel for the current session state."""
    frame = session.detection.overlay
    if frame is None:
        if not session.camera_available:
            return _placeholder(session.s, "NO CAMERA")
        return _placeholder(session.s, "LOADING FACE MODEL...")
    view = draw_status(frame, session.current_metrics, session.state)
    return draw_result_panel(view, session.result, session.error or notice)


async def run_live_session(session: AnalysisSession) -> None:
    notice: Optional[str] = None
    pending: Optional[asyncio.Future] = None

    async def _capture() -> None:
        nonlocal notice
        try:
            await session.capture()
        except CaptureRefused as e:
            notice = e.notice

    async with session:
        try:
            while True:
                cv2.imshow(WINDOW_NAME, render_view(session, notice))
                key = cv2.waitKey(1) & 0xFF
                if key == QUIT_KEY:
                    break
                if key in CAPTURE_KEYS and (pending is None or pending.done()):
                    notice = None
                    pending = asyncio.ensure_future(_capture())
                elif key == RESET_KEY:
                    try:
                        session.reset()
                        notice = None
                    except InvalidTransition:
                        logger.debug(f"[live] reset ignored in state={session.state.value}")
                await asyncio.sleep(session.s.FRAME_INTERVAL)
        finally:
            if pending is not None and not pending.done():
                pending.cancel()
            cv2.destroyAllWindows()


def run_live_overlay(settings: Settings, camera_index: Optional[int] = None) -> None:
    """Open the camera window and block until 'q' is pressed."""
    session = AnalysisSession(settings, camera=Camera(settings, camera_index))
    asyncio.run(run_live_session(session))
