# core/detection.py
"""
Per-frame detection loop.

Runs on the asyncio event loop, one iteration per display refresh
(FRAME_INTERVAL). Each iteration reads a frame, runs the FaceLandmarker when
the frame timestamp advanced, publishes the current FaceMetrics snapshot
(None = no face) and redraws the overlay. The blocking camera read runs in a
worker thread; at most one iteration is in flight. Detection itself stays on
the loop thread, so the landmarker only ever sees one caller.

The loop re-arms itself only while its guard holds: camera and landmarker
ready, state in DETECTION_STATES, cancellation token not cancelled. It is
re-armed by a state listener when the state re-enters the allowed set.
Entering ERROR runs one more detection so the published snapshot matches
the frame a capture from ERROR would send.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import numpy as np

from core.camera import Camera, Frame
from core.config import Settings
from core.emotion import scores_from_categories, synthesize_face_metrics
from core.landmarker import LandmarkerHandle
from core.models import AppState, FaceMetrics
from core.state import StateMachine
from core.visual import Connections, draw_face_mesh

logger = logging.getLogger(__name__)


class CancelToken:
    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class DetectionLoop:
    def __init__(self,
                 settings: Settings,
                 camera: Camera,
                 landmarker: LandmarkerHandle,
                 machine: StateMachine,
                 connections: Optional[Connections] = None):
        self.s = settings
        self.camera = camera
        self.landmarker = landmarker
        self.machine = machine
        self.connections = connections
        self.token = CancelToken()
        self.overlay: Optional[np.ndarray] = None
        self._metrics: Optional[FaceMetrics] = None
        self._last_video_ts: float = -1.0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe = None

    # ---- published state ----
    @property
    def current_metrics(self) -> Optional[FaceMetrics]:
        return self._metrics

    @property
    def ready(self) -> bool:
        return self.camera.is_open and self.landmarker.ready

    @property
    def armed(self) -> bool:
        return self._pending is not None

    @property
    def in_flight(self) -> bool:
        return self._task is not None

    def should_run(self) -> bool:
        return (not self.token.cancelled) and self.ready and self.machine.detection_allowed

    # ---- lifecycle ----
    def start(self) -> None:
        """Attach to the running event loop and arm the first iteration."""
        self._loop = asyncio.get_running_loop()
        if self._unsubscribe is None:
            self._unsubscribe = self.machine.subscribe(self._on_state_change)
        self.arm()

    def arm(self) -> None:
        if (self._loop is None or self._pending is not None or self._task is not None
                or not self.should_run()):
            return
        self._pending = self._loop.call_later(self.s.FRAME_INTERVAL, self._fire)

    def close(self) -> None:
        self.token.cancel()
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.debug("[detection] loop closed")

    async def drain(self) -> None:
        """Wait for an in-flight camera read before the camera is released."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _on_state_change(self, previous: AppState, current: AppState) -> None:
        if self.should_run():
            self.arm()
            return
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if current == AppState.ERROR:
            self._refresh_on_error()

    def _refresh_on_error(self) -> None:
        # ERROR still accepts captures, so the snapshot must describe the current frame
        frame = None
        if not self.token.cancelled and self.ready and self._task is None:
            frame = self.camera.read()
        if frame is None:
            self._metrics = None
            return
        self.process(frame)

    def _fire(self) -> None:
        self._pending = None
        if not self.should_run():
            logger.debug(f"[detection] suspended in state={self.machine.state.value}")
            return
        self._task = self._loop.create_task(self._iterate())

    async def _iterate(self) -> None:
        try:
            frame = await asyncio.to_thread(self.camera.read)
            if self.should_run():
                self.process(frame)
        finally:
            self._task = None
            self.arm()

    # ---- one iteration ----
    def step(self) -> None:
        self.process(self.camera.read())

    def process(self, frame: Optional[Frame]) -> None:
        if frame is None or frame.timestamp_ms == self._last_video_ts:
            return
        self._last_video_ts = frame.timestamp_ms

        try:
            result = self.landmarker.detect(frame.image, time.monotonic() * 1000.0)
        except Exception:
            # Be resilient: a failed frame counts as no face
            logger.exception("[detection] detector failed; marking no face")
            result = None

        self.overlay = draw_face_mesh(frame.image,
                                      getattr(result, "face_landmarks", None),
                                      self.connections)

        blendshapes = getattr(result, "face_blendshapes", None)
        if blendshapes:
            self._metrics = synthesize_face_metrics(scores_from_categories(blendshapes[0]))
        else:
            self._metrics = None
