"""
Gemini client for semantic face analysis.

Sends a captured still plus a fixed instruction and a strict response schema,
validates the JSON reply and merges it with the locally computed FaceMetrics.
"""
from __future__ import annotations
import base64
import binascii
import json
import logging
import re
from typing import Optional

from google import genai
from google.genai import types
from pydantic import ValidationError

from core.config import Settings
from core.models import AnalysisResult, FaceMetrics, RemoteAnalysis

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = re.compile(r"^data:image/(png|jpeg|jpg);base64,")

ANALYSIS_PROMPT = """Analyze this face with high precision.
1. Use skin texture, expression lines and bone structure to estimate the age with a maximum error of 3 years (e.g. "23-25").
2. Identify the primary emotion and the aesthetic "vibe" (Cyberpunk, Minimalist, Vintage, etc).
3. Generate recommendations.

Answer strictly in JSON."""


class AnalysisError(RuntimeError):
    pass


def check_api_key(settings: Settings) -> bool:
    """Log (but do not fail) when the API key is missing; calls will fail later."""
    if not settings.GEMINI_API_KEY:
        logger.error("GEMINI_API_KEY (or API_KEY) is missing from environment variables.")
        return False
    return True


def strip_data_url(image_b64: str) -> str:
    return DATA_URL_PREFIX.sub("", image_b64, count=1)


def parse_remote_analysis(text: Optional[str]) -> RemoteAnalysis:
    """Decode and validate the model's JSON reply; any mismatch is an AnalysisError."""
    if not text:
        raise AnalysisError("No text response from Gemini")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"Gemini response is not valid JSON: {e}") from e
    try:
        return RemoteAnalysis.model_validate(data)
    except ValidationError as e:
        raise AnalysisError(f"Gemini response does not match schema: {e}") from e


def merge_analysis(remote: RemoteAnalysis, metrics: FaceMetrics) -> AnalysisResult:
    """Local metrics always replace anything emotion-like the model returned."""
    return AnalysisResult(
        sentiment=remote.sentiment,
        demographics=remote.demographics,
        aesthetics=remote.aesthetics,
        recommendations=remote.recommendations,
        metrics=metrics,
    )


class GeminiAnalyzer:
    def __init__(self, settings: Settings, client=None):
        self.s = settings
        self._client = client

    def _ensure_client(self):
        if self._client is None:
            if not self.s.GEMINI_API_KEY:
                raise AnalysisError("GEMINI_API_KEY is not configured")
            self._client = genai.Client(api_key=self.s.GEMINI_API_KEY)
        return self._client

    def build_request(self, image_b64: str) -> tuple[list, types.GenerateContentConfig]:
        try:
            image_bytes = base64.b64decode(strip_data_url(image_b64), validate=True)
        except (binascii.Error, ValueError) as e:
            raise AnalysisError(f"Invalid base64 image: {e}") from e
        contents = [
            types.Part.from_bytes(data=image_bytes, mime_type="image/png"),
            ANALYSIS_PROMPT,
        ]
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=RemoteAnalysis,
        )
        return contents, config

    async def analyze(self, image_b64: str, metrics: FaceMetrics) -> AnalysisResult:
        """
        Analyze a captured still (base64, data-URL prefix optional) and merge the
        reply with ``metrics``. Raises on network, parse or schema failures.
        """
        client = self._ensure_client()
        contents, config = self.build_request(image_b64)
        logger.debug(f"[gemini] generate_content model={self.s.GEMINI_MODEL} bytes={len(image_b64)}")
        response = await client.aio.models.generate_content(
            model=self.s.GEMINI_MODEL,
            contents=contents,
            config=config,
        )
        remote = parse_remote_analysis(getattr(response, "text", None))
        logger.debug(f"[gemini] analysis ok primary={remote.sentiment.primary!r}")
        return merge_analysis(remote, metrics)
