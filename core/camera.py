"""
OpenCV camera wrapper: one stream, opened once and released on teardown.
"""
from __future__ import annotations
import base64
import logging
import time
from typing import NamedTuple, Optional

import cv2
import numpy as np

from core.config import Settings

logger = logging.getLogger(__name__)


class CameraUnavailable(RuntimeError):
    pass


class Frame(NamedTuple):
    image: np.ndarray      # BGR
    timestamp_ms: float    # stream position, or capture clock when the backend has none


def encode_png_data_url(image: np.ndarray) -> str:
    """Encode a BGR frame as a ``data:image/png;base64,...`` URL."""
    ok, buf = cv2.imencode(".png", image)
    if not ok:
        raise RuntimeError("PNG encoding failed")
    return "data:image/png;base64," + base64.b64encode(buf.tobytes()).decode("ascii")


class Camera:
    def __init__(self, settings: Settings, camera_index: int | None = None):
        self.s = settings
        self.index = settings.CAMERA_INDEX if camera_index is None else camera_index
        self._cap: Optional[cv2.VideoCapture] = None
        self.last_frame: Optional[Frame] = None

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def open(self) -> "Camera":
        if self._cap is not None:
            return self
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            raise CameraUnavailable(f"Could not open camera index {self.index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.s.CAMERA_WIDTH)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.s.CAMERA_HEIGHT)
        self._cap = cap
        logger.info(f"[camera] opened index={self.index}")
        return self

    def read(self) -> Optional[Frame]:
        """Read the next frame; None when the stream is closed or the read fails."""
        if self._cap is None:
            return None
        ok, image = self._cap.read()
        if not ok or image is None:
            return None
        pos = self._cap.get(cv2.CAP_PROP_POS_MSEC) or 0.0
        ts = float(pos) if pos > 0 else time.monotonic() * 1000.0
        self.last_frame = Frame(image, ts)
        return self.last_frame

    def grab_still(self) -> str:
        """Frame the detector last saw as a PNG data URL (reads one if none yet)."""
        frame = self.last_frame or self.read()
        if frame is None:
            raise CameraUnavailable("No frame available from camera")
        return encode_png_data_url(frame.image)

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info(f"[camera] released index={self.index}")

    def __enter__(self) -> "Camera":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.release()
