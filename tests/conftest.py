import json
import types

import numpy as np
import pytest

from core.camera import Frame
from core.config import Settings

REMOTE_REPLY = {
    "sentiment": {"primary": "Joy", "confidence": 87, "description": "Wide, genuine smile"},
    "demographics": {"ageRange": "23-25", "genderPrediction": "Female"},
    "aesthetics": {"vibe": "Minimalist", "colors": ["black", "white"], "accessories": ["glasses"]},
    "recommendations": {"music": "Daft Punk - Get Lucky", "activity": "Go for a walk"},
}

SMILE_SCORES = {
    "mouthSmileLeft": 0.8,
    "mouthSmileRight": 0.8,
    "cheekSquintLeft": 0.2,
    "cheekSquintRight": 0.2,
}


class DummyCategory:
    def __init__(self, category_name, score):
        self.category_name = category_name
        self.score = score


class DummyLandmark:
    def __init__(self, x, y):
        self.x = x
        self.y = y


def detection_result(scores=None):
    """FaceLandmarker-like result; scores=None means no face."""
    if scores is None:
        return types.SimpleNamespace(face_landmarks=[], face_blendshapes=[])
    cats = [DummyCategory(k, v) for k, v in scores.items()]
    lms = [DummyLandmark(0.4, 0.4), DummyLandmark(0.6, 0.6)]
    return types.SimpleNamespace(face_landmarks=[lms], face_blendshapes=[cats])


class DummyCamera:
    def __init__(self, fail_open=False, frozen=False):
        self.fail_open = fail_open
        self.frozen = frozen       # repeat the same timestamp
        self.is_open = False
        self.released = False
        self.reads = 0
        self.last_frame = None

    def open(self):
        from core.camera import CameraUnavailable
        if self.fail_open:
            raise CameraUnavailable("no camera")
        self.is_open = True
        return self

    def read(self):
        if not self.is_open:
            return None
        self.reads += 1
        ts = 1.0 if self.frozen else float(self.reads * 33)
        self.last_frame = Frame(np.zeros((48, 64, 3), dtype=np.uint8), ts)
        return self.last_frame

    def grab_still(self):
        return "data:image/png;base64,iVBORw0KGgo="

    def release(self):
        self.is_open = False
        self.released = True


class DummyLandmarker:
    def __init__(self, result=None, fail=False):
        self.result = result if result is not None else detection_result(SMILE_SCORES)
        self.fail = fail
        self.ready = False
        self.closed = False
        self.detect_calls = 0

    async def load(self):
        if self.fail:
            raise RuntimeError("model download failed")
        self.ready = True
        return self

    def detect(self, image, timestamp_ms):
        self.detect_calls += 1
        return self.result

    def close(self):
        self.ready = False
        self.closed = True


class DummyModels:
    def __init__(self, text=None, exc=None):
        self.text = text
        self.exc = exc
        self.calls = []

    async def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.exc is not None:
            raise self.exc
        return types.SimpleNamespace(text=self.text)


class DummyGenaiClient:
    def __init__(self, models):
        self.aio = types.SimpleNamespace(models=models)


@pytest.fixture
def settings():
    # Long frame interval: tests drive detection.step() by hand
    return Settings(GEMINI_API_KEY="test-key", FRAME_INTERVAL=60.0)


@pytest.fixture
def remote_text():
    return json.dumps(REMOTE_REPLY)
