"""
Gemini Generative Language API clients over plain HTTP.

GeminiStyleService.analyze  -- reference image -> StyleDescription (JSON mode)
GeminiStyleService.apply    -- source image + style prompt -> generated image

Each call is a single attempt; failures surface as AnalysisError or
GenerationError with a message suitable for the UI.
"""

from __future__ import annotations

import logging
import textwrap
from typing import Any, Dict, List, Optional

import requests

from errors import AnalysisError, GenerationError
from models import STYLE_FIELDS, EncodedImage, StyleDescription
from settings import Settings

logger = logging.getLogger(__name__)

# =============================================================================
# Prompt templates
# =============================================================================

ANALYSIS_PROMPT = textwrap.dedent(
    """
    Analyze this fashion/style image and provide a detailed breakdown for replication.
    Include specific details about:
    - Outfit (garments, colors, materials, patterns)
    - Accessories (jewelry, hats, bags, footwear)
    - Pose (body position, limb placement, expression)
    - Camera Angle (eye-level, low, bird's eye, etc.)
    - Lighting (natural, cinematic, soft, harsh)
    - Aesthetic (vintage, futuristic, streetwear, high-fashion)

    Then, create a "cohesivePrompt" that is a single, dense descriptive paragraph that can be
    used to re-apply this entire style (clothing, pose, lighting, angle) to a DIFFERENT PERSON
    while keeping their facial identity if possible.
    """
).strip()

GENERATION_PROMPT_TEMPLATE = (
    "Modify this person's photo to match the following style description exactly. "
    "Maintain the person's facial features and identity, but change their outfit, pose, "
    "background, and camera angle to match this: {style_prompt}"
)

STYLE_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {key: {"type": "STRING"} for key in STYLE_FIELDS.values()},
    "required": list(STYLE_FIELDS.values()),
}


def build_generation_prompt(style_prompt: str) -> str:
    return GENERATION_PROMPT_TEMPLATE.format(style_prompt=style_prompt)


def _image_part(image: EncodedImage) -> Dict[str, Any]:
    return {"inline_data": {"mime_type": image.media_type, "data": image.base64_data}}


def _first_candidate_parts(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    candidates = data.get("candidates") or []
    if not candidates:
        return []
    return (candidates[0].get("content") or {}).get("parts") or []


def _inline_image(part: Dict[str, Any]) -> Optional[EncodedImage]:
    """Return the part's inline image, accepting camelCase and snake_case keys."""
    inline = part.get("inlineData") or part.get("inline_data")
    if not inline or not inline.get("data"):
        return None
    media_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
    return EncodedImage.from_base64(inline["data"], media_type)


# =============================================================================
# Client
# =============================================================================

class GeminiStyleService:
    """Style analysis and style application backed by the Gemini REST API."""

    def __init__(
        self,
        api_key: str,
        *,
        analysis_model: str,
        generation_model: str,
        api_base: str,
        timeout: float,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.analysis_model = analysis_model
        self.generation_model = generation_model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._post = session.post if session is not None else requests.post

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "GeminiStyleService":
        if not settings.api_key:
            raise ValueError("GEMINI_API_KEY is not configured.")
        options = dict(
            analysis_model=settings.analysis_model,
            generation_model=settings.generation_model,
            api_base=settings.api_base,
            timeout=settings.timeout,
        )
        options.update(overrides)
        return cls(settings.api_key, **options)

    def _generate_content(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a generateContent request and return the decoded JSON body.

        Raises requests.RequestException or RuntimeError; callers translate
        those into the call-specific error type.
        """
        url = f"{self.api_base}/models/{model}:generateContent"
        logger.info("Calling %s", model)
        resp = self._post(
            url,
            headers={"Content-Type": "application/json"},
            params={"key": self.api_key},
            json=payload,
            timeout=self.timeout,
        )
        if resp.status_code != 200:
            logger.error("Gemini API error %s from %s", resp.status_code, model)
            raise RuntimeError(f"Gemini API error {resp.status_code}: {resp.text[:512]}")
        return resp.json()

    def analyze(self, image: EncodedImage) -> StyleDescription:
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [_image_part(image), {"text": ANALYSIS_PROMPT}],
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": STYLE_RESPONSE_SCHEMA,
            },
        }
        try:
            data = self._generate_content(self.analysis_model, payload)
        except (requests.RequestException, RuntimeError, ValueError) as ex:
            raise AnalysisError(f"Failed to analyze image style. {ex}") from ex

        text = "".join(p.get("text", "") for p in _first_candidate_parts(data))
        return StyleDescription.from_json(text)

    def apply(self, image: EncodedImage, style_prompt: str) -> EncodedImage:
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [_image_part(image), {"text": build_generation_prompt(style_prompt)}],
                }
            ],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }
        try:
            data = self._generate_content(self.generation_model, payload)
        except (requests.RequestException, RuntimeError, ValueError) as ex:
            raise GenerationError(f"Generation failed. {ex}") from ex

        parts = _first_candidate_parts(data)
        if not parts:
            raise GenerationError("No image generated.")
        for part in parts:
            found = _inline_image(part)
            if found is not None:
                return found
        raise GenerationError("AI responded but no image was found in the output.")
