# core/session.py
"""
Capture/analyze orchestration.

AnalysisSession owns the camera, the landmarker handle, the detection loop
and the application state. ``capture()`` snapshots the current frame and
metrics, asks Gemini for the semantic part and merges both; ``reset()``
returns to IDLE from SUCCESS or ERROR.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Optional

from core.camera import Camera, CameraUnavailable
from core.config import Settings
from core.detection import DetectionLoop
from core.gemini import GeminiAnalyzer, check_api_key
from core.landmarker import LandmarkerHandle
from core.models import AnalysisResult, AppState, FaceMetrics, SessionStatus
from core.state import InvalidTransition, StateMachine
from core.visual import Connections

logger = logging.getLogger(__name__)

NO_FACE_NOTICE = "No face detected. Move closer to the camera."
BUSY_NOTICE = "An analysis is already in progress."
LOADING_NOTICE = "The face model is still loading."
NO_CAMERA_NOTICE = "No camera frame available."
ANALYSIS_ERROR_MESSAGE = "Could not analyze the image. Please try again."


class CaptureRefused(Exception):
    """Capture preconditions not met; nothing changed."""
    def __init__(self, notice: str):
        super().__init__(notice)
        self.notice = notice


class AnalysisSession:
    def __init__(self,
                 settings: Settings,
                 camera: Optional[Camera] = None,
                 landmarker: Optional[LandmarkerHandle] = None,
                 analyzer: Optional[GeminiAnalyzer] = None,
                 machine: Optional[StateMachine] = None,
                 connections: Optional[Connections] = None):
        self.s = settings
        self.machine = machine or StateMachine()
        self.camera = camera or Camera(settings)
        self.landmarker = landmarker or LandmarkerHandle(settings)
        self.analyzer = analyzer or GeminiAnalyzer(settings)
        self.detection = DetectionLoop(settings, self.camera, self.landmarker, self.machine, connections)
        self.result: Optional[AnalysisResult] = None
        self.error: Optional[str] = None
        self.camera_available = False
        self._load_task: Optional[asyncio.Task] = None

    # ---- lifecycle ----
    async def start(self) -> None:
        check_api_key(self.s)
        try:
            self.camera.open()
            self.camera_available = True
        except CameraUnavailable:
            logger.exception("[session] camera unavailable; detection disabled")
        self.detection.start()
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load_model())

    async def _load_model(self) -> None:
        try:
            await self.landmarker.load()
        except Exception:
            # No retry: the session stays in LOADING_MODEL
            logger.exception("[session] failed to load face landmarker")
            return
        self.machine.transition(AppState.IDLE)

    async def wait_until_loaded(self) -> bool:
        if self._load_task is not None:
            await self._load_task
        return self.landmarker.ready

    async def close(self) -> None:
        try:
            self.detection.close()
            await self.detection.drain()
            if self._load_task is not None and not self._load_task.done():
                self._load_task.cancel()
                try:
                    await self._load_task
                except asyncio.CancelledError:
                    pass
        finally:
            try:
                self.landmarker.close()
            finally:
                self.camera.release()
                self.camera_available = False
                logger.info("[session] closed")

    async def __aenter__(self) -> "AnalysisSession":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ---- views ----
    @property
    def state(self) -> AppState:
        return self.machine.state

    @property
    def current_metrics(self) -> Optional[FaceMetrics]:
        return self.detection.current_metrics

    def status(self) -> SessionStatus:
        metrics = self.current_metrics
        return SessionStatus(
            state=self.state,
            camera_available=self.camera_available,
            model_ready=self.landmarker.ready,
            face_tracked=metrics is not None,
            metrics=metrics,
            result=self.result,
            error=self.error,
        )

    # ---- actions ----
    async def capture(self) -> Optional[AnalysisResult]:
        """
        Snapshot frame + metrics and run the remote analysis.

        Raises CaptureRefused (no state change, no remote call) when busy, not
        loaded or no face is tracked. Returns the merged result on SUCCESS, or
        None on ERROR (``self.error`` then holds the user-facing message).
        """
        if self.state == AppState.ANALYZING:
            raise CaptureRefused(BUSY_NOTICE)
        if not self.machine.capture_allowed:
            raise CaptureRefused(LOADING_NOTICE)
        metrics = self.current_metrics
        if metrics is None:
            logger.info("[session] capture refused: no face tracked")
            raise CaptureRefused(NO_FACE_NOTICE)
        try:
            image = self.camera.grab_still()
        except CameraUnavailable:
            logger.warning("[session] capture refused: no camera frame")
            raise CaptureRefused(NO_CAMERA_NOTICE)

        snapshot = metrics.model_copy()
        self.machine.transition(AppState.ANALYZING)
        self.error = None
        logger.debug(f"[session] analyzing joy={snapshot.joy:.2f} eyes={snapshot.eye_openness:.2f}")

        try:
            result = await self.analyzer.analyze(image, snapshot)
        except Exception:
            logger.exception("[session] remote analysis failed")
            self.error = ANALYSIS_ERROR_MESSAGE
            self.machine.transition(AppState.ERROR)
            return None

        self.result = result
        self.machine.transition(AppState.SUCCESS)
        return result

    def reset(self) -> None:
        """Clear result and error; SUCCESS/ERROR -> IDLE."""
        if not self.machine.reset_allowed:
            raise InvalidTransition(self.state, AppState.IDLE)
        self.result = None
        self.error = None
        self.machine.transition(AppState.IDLE)
