"""
MediaPipe FaceLandmarker handle (lazy-loaded, explicitly owned).
"""
from __future__ import annotations
import asyncio
import logging
import os
import urllib.request
from typing import Any, Callable, Optional

import cv2
import numpy as np

from core.config import Settings

logger = logging.getLogger(__name__)


def download_face_landmarker_model(settings: Settings) -> str:
    """Download the FaceLandmarker model if it doesn't exist; returns the local path."""
    path = settings.FACE_LANDMARKER_MODEL
    if not os.path.exists(path):
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        logger.info(f"[landmarker] downloading model {settings.FACE_LANDMARKER_URL} -> {path}")
        urllib.request.urlretrieve(settings.FACE_LANDMARKER_URL, path)
    return path


def create_face_landmarker(settings: Settings):
    """
    Build a single-face VIDEO-mode FaceLandmarker with blendshapes and
    transformation matrices enabled. Prefers the GPU delegate and falls back
    to CPU when the GPU delegate cannot be created.
    """
    # Lazy import: mediapipe is heavy and tests inject fakes instead
    from mediapipe.tasks.python import BaseOptions, vision

    model_path = download_face_landmarker_model(settings)

    def _build(delegate):
        opts = vision.FaceLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=model_path, delegate=delegate),
            running_mode=vision.RunningMode.VIDEO,
            num_faces=1,
            output_face_blendshapes=True,
            output_facial_transformation_matrixes=True,
        )
        return vision.FaceLandmarker.create_from_options(opts)

    if settings.DELEGATE == "GPU":
        try:
            return _build(BaseOptions.Delegate.GPU)
        except Exception:
            logger.warning("[landmarker] GPU delegate unavailable; falling back to CPU", exc_info=True)
    return _build(BaseOptions.Delegate.CPU)


class LandmarkerHandle:
    """
    Owns one FaceLandmarker. ``load()`` is idempotent: concurrent callers share
    a single in-flight initialization.
    """
    def __init__(self, settings: Settings, factory: Optional[Callable[[Settings], Any]] = None):
        self.s = settings
        self._factory = factory or create_face_landmarker
        self._landmarker = None
        self._loading: Optional[asyncio.Future] = None
        self._last_ts = -1

    @property
    def ready(self) -> bool:
        return self._landmarker is not None

    async def load(self):
        if self._landmarker is not None:
            return self._landmarker
        if self._loading is None:
            self._loading = asyncio.ensure_future(asyncio.to_thread(self._factory, self.s))
        loading = self._loading
        try:
            landmarker = await loading
        except Exception:
            if self._loading is loading:
                self._loading = None
            raise
        if self._landmarker is None:
            self._landmarker = landmarker
            logger.info("[landmarker] model ready")
        return self._landmarker

    def detect(self, image: np.ndarray, timestamp_ms: float):
        """
        Run one VIDEO-mode detection on a BGR frame. Timestamps are forced to be
        strictly increasing as MediaPipe requires.
        """
        if self._landmarker is None:
            raise RuntimeError("Landmarker not loaded")
        import mediapipe as mp

        ts = max(int(timestamp_ms), self._last_ts + 1)
        self._last_ts = ts
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        return self._landmarker.detect_for_video(mp_image, ts)

    def close(self) -> None:
        if self._loading is not None and not self._loading.done():
            self._loading.cancel()
        self._loading = None
        if self._landmarker is not None:
            try:
                self._landmarker.close()
            finally:
                self._landmarker = None
                logger.info("[landmarker] closed")
