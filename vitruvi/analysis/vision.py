"""Gemini vision adapter.

Sends a site photo plus a fixed prompt to Gemini and returns the parsed JSON
guess. Every failure is raised as a ``VisionError`` subclass whose
``reason`` tells the caller which category it was; no fallback data is ever
substituted.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import re
from typing import Any

import httpx
import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from vitruvi.config import get_config
from vitruvi.exceptions import VitruviError
from vitruvi.models import ProjectMode

logger = structlog.get_logger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,", re.IGNORECASE)


class VisionError(VitruviError):
    """Base class for adapter failures."""

    reason = "vision_error"


class VisionUnavailableError(VisionError):
    """No API key, or the client could not be initialized."""

    reason = "unavailable"


class VisionResponseError(VisionError):
    """The model answered, but not with a JSON object."""

    reason = "unparsable_response"


class VisionRequestError(VisionError):
    """The model call itself failed or timed out."""

    reason = "request_failed"


class ImageRejectedError(VisionError):
    """The model found no building or structure in the image."""

    reason = "not_construction_related"


class InvalidImageError(ValueError):
    """Uploaded image payload is not valid base64."""


ANALYSIS_PROMPT = """You are VitruviAI's Construction Analyst. Analyze this image of a {subject}.

VALIDATION - be lenient, default to YES:
ACCEPT and ANALYZE (set aec_related: true):
- any building, structure or construction, at any stage or condition
- completed buildings, furnished interiors, decorated rooms
- under-construction sites and partially built structures
- floor plans, blueprints, drawings, sketches, renderings
- construction materials, equipment and tools

ONLY REJECT (set aec_related: false) when there is no structure at all:
- pure nature (trees, sky, water)
- only people or animals
- only food or products

RULES:
- If any building, structure or room is visible, aec_related is true
- If uncertain, aec_related is true
- Completed buildings: stage "Completed", progressPercentage 100
- Plans and drawings only: stage "Planning/Design", progressPercentage 0

Return this JSON object:
{{
    "aec_related": true,
    "progressPercentage": number (0-100),
    "stage": string,
    "timeRemaining": string,
    "criticalPath": string,
    "delaysFlagged": number,
    "confidence_score": number (0-100),
    "manpower": {{"total": number, "skilled": number, "unskilled": number,
                  "safetyScore": number (0-100), "productivityIndex": number (0-100)}},
    "machinery": {{"activeUnits": number, "utilization": number (0-100),
                   "maintenanceAlerts": number}},
    "materials": [{{"name": string, "allocated": number, "used": number,
                    "wastage": number, "risk": "Low"|"Medium"|"High"}}],
    "financials": {{"budgetSpent": number (percentage of budget),
                    "budgetTotal": number (USD estimate), "costOverrun": number (percentage)}},
    "valuation": {{"current": number, "landValue": number, "projectedCompletedValue": number}},
    "geo": {{"soilType": string, "floodRisk": "Low"|"Medium"|"High", "climateScore": number (0-100)}},
    "compliance": {{"structuralScore": number (0-100),
                    "sustainabilityRating": "Platinum"|"Gold"|"Silver"|"Certified"}},
    "insights": [string] (3-5 observations)
}}

Return ONLY valid JSON, no markdown, no prose."""


def build_prompt(mode: ProjectMode) -> str:
    subject = "construction site" if mode is ProjectMode.UNDER_CONSTRUCTION else "completed building"
    return ANALYSIS_PROMPT.format(subject=subject)


def decode_image(payload: str) -> tuple[bytes, str]:
    """Decode a base64 string or data URL into (bytes, mime type).

    Raises:
        InvalidImageError: If the payload is empty or not valid base64
    """
    mime_type = "image/jpeg"
    match = _DATA_URL_PATTERN.match(payload.strip())
    if match:
        mime_type = match.group("mime").lower()
        payload = payload.strip()[match.end():]
    elif "," in payload:
        payload = payload.split(",", 1)[1]

    try:
        data = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError("Image is not valid base64") from exc
    if not data:
        raise InvalidImageError("Image payload is empty")
    return data, mime_type


def parse_model_response(text: str) -> dict[str, Any]:
    """Strip markdown fences and parse the model's JSON object.

    Raises:
        VisionResponseError: If the text is not a JSON object
    """
    cleaned = _FENCE_PATTERN.sub("", text or "").strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise VisionResponseError("Failed to parse AI response. Please try again.") from exc
    if not isinstance(parsed, dict):
        raise VisionResponseError("AI response was not a JSON object")
    return parsed


class VisionAnalyzer:
    """Async Gemini client for construction-site photos."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ):
        settings = get_config().gemini
        self.api_key = api_key or settings.api_key
        self.model = model or settings.model
        self.timeout_seconds = timeout_seconds or settings.timeout_seconds
        self.client: genai.Client | None = None
        self.initialization_error: str | None = None

        if not self.api_key:
            self.initialization_error = "No GEMINI_API_KEY configured"
            logger.warning("vision_disabled", reason=self.initialization_error)
            return

        try:
            self.client = genai.Client(api_key=self.api_key)
        except Exception as exc:
            self.initialization_error = str(exc)
            logger.error("vision_init_failed", error=str(exc))
        else:
            logger.info("vision_initialized", model=self.model)

    def is_available(self) -> bool:
        return self.client is not None

    async def analyze(
        self,
        image: bytes,
        mode: ProjectMode,
        mime_type: str = "image/jpeg",
    ) -> dict[str, Any]:
        """Return the model's raw JSON guess for one image.

        Raises:
            VisionUnavailableError: Client not configured
            VisionRequestError: Call failed or timed out
            VisionResponseError: Output was not a JSON object
            ImageRejectedError: Model reported no structure in the image
        """
        if self.client is None:
            raise VisionUnavailableError(
                self.initialization_error or "AI model not initialized. Configure GEMINI_API_KEY."
            )

        logger.info("vision_request", model=self.model, mode=mode.value, image_kb=len(image) // 1024)
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model,
                    contents=[
                        build_prompt(mode),
                        types.Part.from_bytes(data=image, mime_type=mime_type),
                    ],
                    config=types.GenerateContentConfig(
                        response_mime_type="application/json",
                        temperature=0.2,
                    ),
                ),
                timeout=self.timeout_seconds,
            )
            text = response.text or ""
        except asyncio.TimeoutError as exc:
            raise VisionRequestError(
                f"AI analysis timed out after {self.timeout_seconds:.0f}s"
            ) from exc
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            raise VisionRequestError(f"AI analysis failed: {exc}") from exc
        except ValueError as exc:
            # SDK could not map the reply (e.g. UnknownApiResponseError)
            raise VisionResponseError(f"Unreadable AI response: {exc}") from exc

        raw = parse_model_response(text)
        if raw.get("aec_related") is False:
            raise ImageRejectedError(
                "No building or construction content detected. Upload a site photo or plan."
            )
        return raw
