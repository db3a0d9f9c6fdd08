import io
from typing import List, Optional, Tuple

import pytest
from PIL import Image

from models import EncodedImage, StyleDescription

STYLE_JSON = {
    "outfit": "Oversized camel trench coat over a black turtleneck",
    "accessories": "Gold hoops, tortoiseshell sunglasses",
    "pose": "Three-quarter stance, hands in pockets",
    "cameraAngle": "Slightly low, eye-level lens",
    "lighting": "Soft overcast daylight",
    "aesthetic": "Parisian minimalism",
    "cohesivePrompt": "A person in an oversized camel trench coat, three-quarter stance, soft daylight.",
}


class FakeStyleService:
    """Deterministic stand-in for the Gemini clients that records every call."""

    def __init__(self, description=None, generated=None, analyze_error=None, apply_error=None):
        self.description = description
        self.generated = generated
        self.analyze_error = analyze_error
        self.apply_error = apply_error
        self.analyze_calls: List[EncodedImage] = []
        self.apply_calls: List[Tuple[EncodedImage, str]] = []
        self.on_call = None  # hook run inside the call, e.g. to inspect state

    def analyze(self, image):
        self.analyze_calls.append(image)
        if self.on_call:
            self.on_call()
        if self.analyze_error:
            raise self.analyze_error
        return self.description

    def apply(self, image, style_prompt):
        self.apply_calls.append((image, style_prompt))
        if self.on_call:
            self.on_call()
        if self.apply_error:
            raise self.apply_error
        return self.generated


def make_png(size=(4, 3), color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def reference_image(png_bytes) -> EncodedImage:
    return EncodedImage.from_bytes(png_bytes, "image/png")


@pytest.fixture
def source_image() -> EncodedImage:
    return EncodedImage.from_bytes(make_png(color=(10, 120, 240)), "image/png")


@pytest.fixture
def style_json() -> dict:
    return dict(STYLE_JSON)


@pytest.fixture
def description() -> StyleDescription:
    return StyleDescription.from_dict(STYLE_JSON)


@pytest.fixture
def generated_image() -> EncodedImage:
    return EncodedImage.from_base64("AAAA", "image/png")


@pytest.fixture
def fake_service(description, generated_image) -> FakeStyleService:
    return FakeStyleService(description=description, generated=generated_image)


@pytest.fixture
def service_factory():
    def _make(**kwargs) -> FakeStyleService:
        return FakeStyleService(**kwargs)

    return _make


class FakeUpload:
    """Mimics the UploadedFile objects Streamlit widgets return."""

    def __init__(self, data: bytes, type: Optional[str] = None, name: str = "photo.png"):
        self._data = data
        self.type = type
        self.name = name

    def getvalue(self) -> bytes:
        return self._data


@pytest.fixture
def upload_factory():
    return FakeUpload
