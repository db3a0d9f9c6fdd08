"""
Data model shared by the capture adapter, the Gemini clients and the workflow.

- EncodedImage: data-URL payload + media type, the only image form that moves
  between components.
- StyleDescription: the structured result of the analysis call.
- Step / WorkflowState: the single per-session record the UI renders from.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict, Optional

from errors import AnalysisError

# =============================================================================
# Images
# =============================================================================

DATA_URL_PREFIX = "data:"
BASE64_MARKER = ";base64,"


@dataclass(frozen=True)
class EncodedImage:
    """An encoded image: a `data:<type>;base64,<bytes>` payload and its type."""

    payload: str
    media_type: str

    @classmethod
    def from_bytes(cls, data: bytes, media_type: str) -> "EncodedImage":
        b64 = base64.b64encode(data).decode("utf-8")
        return cls(payload=f"data:{media_type};base64,{b64}", media_type=media_type)

    @classmethod
    def from_base64(cls, b64: str, media_type: str) -> "EncodedImage":
        """Wrap raw base64 (as returned by the API) into a data URL."""
        return cls(payload=f"data:{media_type};base64,{b64}", media_type=media_type)

    @property
    def base64_data(self) -> str:
        """Payload without the data-URL prefix, ready for an inline-data part."""
        if self.payload.startswith(DATA_URL_PREFIX) and BASE64_MARKER in self.payload:
            return self.payload.split(BASE64_MARKER, 1)[1]
        return self.payload

    def to_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.base64_data, validate=True)
        except (binascii.Error, ValueError) as ex:
            raise ValueError(f"Payload is not valid base64: {ex}") from ex


# =============================================================================
# Style description
# =============================================================================

# attribute name -> JSON key used on the wire
STYLE_FIELDS: Dict[str, str] = {
    "outfit": "outfit",
    "accessories": "accessories",
    "pose": "pose",
    "camera_angle": "cameraAngle",
    "lighting": "lighting",
    "aesthetic": "aesthetic",
    "cohesive_prompt": "cohesivePrompt",
}


@dataclass(frozen=True)
class StyleDescription:
    outfit: str
    accessories: str
    pose: str
    camera_angle: str
    lighting: str
    aesthetic: str
    cohesive_prompt: str

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "StyleDescription":
        """Build from the camelCase wire dict; every field must be a string.

        Raises:
            AnalysisError: a field is missing, not a string, or the
                cohesive prompt is empty.
        """
        if not isinstance(data, dict):
            raise AnalysisError("Failed to analyze image style: response is not a JSON object.")
        values = {}
        for attr, key in STYLE_FIELDS.items():
            value = data.get(key)
            if not isinstance(value, str):
                raise AnalysisError(f"Failed to analyze image style: missing field '{key}'.")
            values[attr] = value
        if not values["cohesive_prompt"].strip():
            raise AnalysisError("Failed to analyze image style: empty cohesive prompt.")
        return cls(**values)

    @classmethod
    def from_json(cls, text: Optional[str]) -> "StyleDescription":
        if not text or not text.strip():
            raise AnalysisError("Failed to analyze image style: empty response.")
        try:
            data = json.loads(text)
        except ValueError as ex:
            raise AnalysisError(f"Failed to analyze image style: {ex}") from ex
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, str]:
        return {STYLE_FIELDS[f.name]: getattr(self, f.name) for f in fields(self)}


# =============================================================================
# Workflow state
# =============================================================================

class Step(str, Enum):
    UPLOAD_REFERENCE = "UPLOAD_REFERENCE"
    ANALYZING = "ANALYZING"
    PROMPT_READY = "PROMPT_READY"
    UPLOAD_SOURCE = "UPLOAD_SOURCE"
    GENERATING = "GENERATING"
    RESULT = "RESULT"


# steps at or past PROMPT_READY, where a style description must exist
DESCRIBED_STEPS = (Step.PROMPT_READY, Step.UPLOAD_SOURCE, Step.GENERATING, Step.RESULT)


@dataclass
class WorkflowState:
    step: Step = Step.UPLOAD_REFERENCE
    reference_image: Optional[EncodedImage] = None
    source_image: Optional[EncodedImage] = None
    style_description: Optional[StyleDescription] = None
    generated_image: Optional[EncodedImage] = None
    error_message: Optional[str] = None
    is_capture_mode_active: bool = False
