"""
Configuration for the face analysis session.
"""
from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()

FACE_LANDMARKER_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
    "face_landmarker/float16/1/face_landmarker.task"
)

class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    GEMINI_API_KEY: str | None = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    FACE_LANDMARKER_MODEL: str = os.getenv("FACE_LANDMARKER_MODEL", "models/face_landmarker.task")
    FACE_LANDMARKER_URL: str = os.getenv("FACE_LANDMARKER_URL", FACE_LANDMARKER_URL)
    DELEGATE: str = (os.getenv("DELEGATE", "GPU") or "GPU")

    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    CAMERA_WIDTH: int = int(os.getenv("CAMERA_WIDTH", "1280"))
    CAMERA_HEIGHT: int = int(os.getenv("CAMERA_HEIGHT", "720"))
    FRAME_INTERVAL: float = float(os.getenv("FRAME_INTERVAL", str(1 / 30)))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize DELEGATE: strip comments/extra words, upper-case, validate
        words = (self.DELEGATE or "").strip().split()
        delegate = words[0].upper() if words else "GPU"
        if delegate not in ("GPU", "CPU"):
            delegate = "GPU"
        object.__setattr__(self, "DELEGATE", delegate)
        if self.FRAME_INTERVAL <= 0:
            object.__setattr__(self, "FRAME_INTERVAL", 1 / 30)
